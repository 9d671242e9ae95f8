from lark import Token, Tree

from .context import is_tracing, trace
from .errors import syntax_error
from .lex import ExprLexer

# Binary operator levels, lowest precedence first.
BINARY_LEVELS: tuple[dict[str, str], ...] = (
    {'EITHER': 'either', 'BOTH': 'both'},
    {'EQ': 'eq', 'NEQ': 'neq'},
    {'LT': 'lt', 'LTE': 'lte', 'GT': 'gt', 'GTE': 'gte'},
    {'AND': 'bit_and', 'OR': 'bit_or', 'XOR': 'bit_xor'},
    {'ADD': 'add', 'SUB': 'sub'},
    {'MUL': 'mul', 'DIV': 'div', 'QUOT': 'quot', 'EXP': 'exp', 'MOD': 'mod'},
)

UNARY_OPS = {
    'ADD': 'pos',
    'SUB': 'neg',
    'NOT': 'logical_not',
    'COMP': 'comp',
}

LITERALS = {
    'NULL': 'null',
    'BOOLEAN': 'boolean',
    'NUMBER': 'number',
    'STRING': 'string',
}


def node(data: str, children: list, line: int) -> Tree:
    tree = Tree(data, children)
    tree.meta.line = line
    return tree


def line_of(tree: Tree) -> int:
    return getattr(tree.meta, 'line', 0)


class Parser:
    '''
    Precedence-climbing parser from lexemes to an expression tree.

    Nodes are `lark.Tree`s named after the operation they perform, with the
    source line in `meta.line`:

        null / boolean / number / string   [literal token]
        array                              [element...]
        object                             [pair(key, value)...]
        either, both, eq, ... mod          [lhs, rhs]
        pos, neg, logical_not, comp        [operand]
        root                               []
        ident                              [name token]
        lookup                             [target, name token]
        method                             [target, name token, args(arg...)]
        index                              [target, index] or [target, start, stop]
        ternary                            [cond, then, else]
    '''

    def __init__(self, lexemes: list[Token], line: int = 1):
        self._lexemes = lexemes
        self._pos = 0
        # Line of the most recently consumed lexeme, or the end of input.
        self._line = lexemes[0].line if lexemes else line
        self._end_line = line

    def _peek(self) -> Token | None:
        if self._pos < len(self._lexemes):
            return self._lexemes[self._pos]
        return None

    def _match(self, *types: str) -> Token | None:
        tok = self._peek()
        if tok is not None and tok.type in types:
            self._pos += 1
            self._line = tok.line
            return tok
        return None

    def _expect(self, type_: str, msg: str) -> Token:
        if (tok := self._match(type_)) is None:
            raise syntax_error(msg, self._error_line())
        return tok

    def _error_line(self) -> int:
        tok = self._peek()
        return tok.line if tok is not None else self._line

    def parse(self) -> Tree:
        if not self._lexemes:
            raise syntax_error('expected expression', self._end_line)

        tree = self.ternary()
        if self._peek() is not None:
            raise syntax_error('extra tokens in expression', self._error_line())

        if is_tracing:
            trace('Parsed expression: %s', tree)
        return tree

    def ternary(self) -> Tree:
        cond = self.binary(0)
        if (opt := self._match('OPT')) is None:
            return cond

        then = self.binary(0)
        self._expect('COLON', 'expected colon for ternary')
        other = self.binary(0)
        return node('ternary', [cond, then, other], opt.line)

    def binary(self, level: int) -> Tree:
        if level >= len(BINARY_LEVELS):
            return self.unary()

        ops = BINARY_LEVELS[level]
        lhs = self.binary(level + 1)
        while (op := self._match(*ops)) is not None:
            rhs = self.binary(level + 1)
            lhs = node(ops[op.type], [lhs, rhs], op.line)
        return lhs

    def unary(self) -> Tree:
        if (op := self._match(*UNARY_OPS)) is not None:
            return node(UNARY_OPS[op.type], [self.unary()], op.line)
        return self.postfix()

    def _list(self, close: str, msg: str) -> list[Tree]:
        items = []
        if self._match(close) is None:
            items.append(self.ternary())
            while self._match('COMMA') is not None:
                items.append(self.ternary())
            self._expect(close, msg)
        return items

    def postfix(self) -> Tree:
        tree = self.primary()

        while True:
            if self._match('DOT') is not None:
                name = self._expect('IDENT', 'expected identifier after dot')
                if self._match('LPAREN') is not None:
                    args = self._list(
                        'RPAREN', 'expected closing parenthesis after arguments'
                    )
                    tree = node('method', [tree, name, Tree('args', args)], name.line)
                else:
                    tree = node('lookup', [tree, name], name.line)

            elif (bracket := self._match('LBRACK')) is not None:
                children = [tree, self.ternary()]
                if self._match('COMMA') is not None:
                    children.append(self.ternary())
                self._expect('RBRACK', 'expected closing bracket after subscription')
                tree = node('index', children, bracket.line)

            else:
                return tree

    def primary(self) -> Tree:
        if (tok := self._match(*LITERALS)) is not None:
            return node(LITERALS[tok.type], [tok], tok.line)

        if (tok := self._match('ROOT')) is not None:
            return node('root', [], tok.line)

        if (tok := self._match('IDENT')) is not None:
            return node('ident', [tok], tok.line)

        if self._match('LPAREN') is not None:
            tree = self.ternary()
            self._expect('RPAREN', 'expected closing parenthesis after group')
            return tree

        if (tok := self._match('LBRACK')) is not None:
            items = self._list('RBRACK', 'expected closing bracket after array values')
            return node('array', items, tok.line)

        if (tok := self._match('LBRACE')) is not None:
            pairs = []
            if self._match('RBRACE') is None:
                while True:
                    key = self.ternary()
                    self._expect('COLON', 'expected colon after object key')
                    pairs.append(node('pair', [key, self.ternary()], line_of(key)))
                    if self._match('COMMA') is None:
                        break
                self._expect('RBRACE', 'expected closing brace after object entries')
            return node('object', pairs, tok.line)

        if (tok := self._peek()) is not None:
            raise syntax_error('expected expression', tok.line)
        raise syntax_error('unexpected end of file', self._line)


def parse(text: str) -> Tree:
    lexer = ExprLexer(text)
    return Parser(lexer.lex(), lexer.line).parse()
