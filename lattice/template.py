from dataclasses import dataclass, field

from lark import Tree

from .context import is_tracing, trace
from .errors import syntax_error
from .lex import ExprLexer, is_ident_char
from .parse import Parser

# Directive kinds that open a block closed by `$end`, or by the next clause.
BLOCKS = frozenset((
    'if', 'elif', 'else', 'switch', 'case', 'default',
    'for_exc', 'for_inc', 'for_iter', 'with',
))

# Keywords whose header is a single expression followed by a colon.
HEADERS = frozenset(('if', 'elif', 'switch', 'case', 'with'))


@dataclass(eq=False)
class Directive:
    '''
    One template token.

    `text` carries the literal of a span, the path of an include or the
    bound name of a loop. `exprs` holds the parsed header expressions: the
    subject of a substitution or condition, or both bounds of a range loop.
    `body` is filled by the tree builder for blocks, and by the include
    resolver with the included template.
    '''

    kind: str
    line: int
    text: str | None = None
    exprs: tuple[Tree, ...] = ()
    body: list['Directive'] = field(default_factory=list)

    def __repr__(self) -> str:
        parts = [self.kind, f'line={self.line}']
        if self.text is not None:
            parts.append(repr(self.text))
        if self.body:
            parts.append(repr(self.body))
        return f'Directive({", ".join(parts)})'


class TemplateLexer:
    '''Splits template text into spans and directives, in source order.'''

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.line = 1

    def _peek(self, offset: int = 0) -> str:
        p = self.pos + offset
        return self.text[p] if p < len(self.text) else ''

    def lex(self) -> list[Directive]:
        text = self.text
        out: list[Directive] = []
        span: list[str] = []
        span_line = self.line

        while self.pos < len(text):
            i = text.find('$', self.pos)
            if i < 0:
                i = len(text)

            if i > self.pos or self._peek(1) == '$':
                if not span:
                    span_line = self.line
                if i > self.pos:
                    chunk = text[self.pos : i]
                    self.line += chunk.count('\n')
                    self.pos = i
                else:
                    chunk = '$'
                    self.pos += 2
                span.append(chunk)
                continue

            if span:
                out.append(Directive('span', span_line, ''.join(span)))
                span = []
            if (d := self._directive()) is not None:
                out.append(d)

        if span:
            out.append(Directive('span', span_line, ''.join(span)))

        if is_tracing:
            trace('Lexed template: %s', [d.kind for d in out])
        return out

    def _directive(self) -> Directive | None:
        line = self.line
        self.pos += 1

        match self._peek():
            case '(':
                self._comment(line)
                return None
            case '[':
                self.pos += 1
                expr = self._expr(']', 'expected closing bracket for substitution')
                return Directive('sub_esc', line, exprs=(expr,))
            case '{':
                self.pos += 1
                expr = self._expr('}', 'expected closing bracket for substitution')
                return Directive('sub_raw', line, exprs=(expr,))
            case '<':
                end = self.text.find('>', self.pos + 1)
                if end < 0:
                    raise syntax_error('unterminated include', line)
                path = self.text[self.pos + 1 : end]
                self.line += path.count('\n')
                self.pos = end + 1
                return Directive('include', line, path)
            case _:
                return self._keyword(line)

    def _comment(self, line: int):
        text = self.text
        depth = 0
        while self.pos < len(text):
            c = text[self.pos]
            self.pos += 1
            if c == '(':
                depth += 1
            elif c == ')':
                depth -= 1
                if depth == 0:
                    return
            elif c == '\n':
                self.line += 1
        raise syntax_error('unterminated comment', line)

    def _expr(self, term: str, msg: str) -> Tree:
        lexer = ExprLexer(self.text, self.pos, self.line)
        lexemes = lexer.lex(term)
        if not self.text.startswith(term, lexer.pos):
            raise syntax_error(msg, lexer.line)

        tree = Parser(lexemes, lexer.line).parse()
        self.pos = lexer.pos + len(term)
        self.line = lexer.line
        return tree

    def _word(self) -> str:
        start = self.pos
        while is_ident_char(self._peek()):
            self.pos += 1
        word = self.text[start : self.pos]
        if word[:1].isdigit():
            return ''
        return word

    def _space(self):
        if not self._peek().isspace():
            raise syntax_error('expected whitespace', self.line)
        while (c := self._peek()).isspace():
            if c == '\n':
                self.line += 1
            self.pos += 1

    def _keyword(self, line: int) -> Directive:
        word = self._word()
        if not word:
            raise syntax_error('expected keyword', line)

        if word in HEADERS:
            self._space()
            return Directive(word, line, exprs=(self._expr(':', 'expected colon'),))

        match word:
            case 'end':
                return Directive('end', line)
            case 'else' | 'default':
                if self._peek() == ':':
                    self.pos += 1
                return Directive(word, line)
            case 'for':
                return self._for(line)
        raise syntax_error('unknown keyword', line)

    def _for(self, line: int) -> Directive:
        self._space()
        if not (name := self._word()):
            raise syntax_error('expected identifier for loop', self.line)

        self._space()
        match self._word():
            case '':
                raise syntax_error('expected preposition for loop', self.line)
            case 'from':
                lo = self._expr('..', 'expected range')
                inclusive = self._peek() == '='
                if inclusive:
                    self.pos += 1
                hi = self._expr(':', 'expected colon')
                kind = 'for_inc' if inclusive else 'for_exc'
                return Directive(kind, line, name, (lo, hi))
            case 'in':
                src = self._expr(':', 'expected colon')
                return Directive('for_iter', line, name, (src,))
        raise syntax_error('invalid loop preposition', self.line)


def lex_template(text: str) -> list[Directive]:
    return TemplateLexer(text).lex()
