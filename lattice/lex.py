import string

from lark import Token

from .context import is_tracing, trace
from .errors import syntax_error

# Two-character operators are tried before their one-character prefixes.
OPERATORS = {
    '||': 'EITHER',
    '&&': 'BOTH',
    '==': 'EQ',
    '!=': 'NEQ',
    '>=': 'GTE',
    '<=': 'LTE',
    '**': 'EXP',
    '//': 'QUOT',
    '(': 'LPAREN',
    ')': 'RPAREN',
    '[': 'LBRACK',
    ']': 'RBRACK',
    '{': 'LBRACE',
    '}': 'RBRACE',
    ',': 'COMMA',
    '.': 'DOT',
    ':': 'COLON',
    '|': 'OR',
    '&': 'AND',
    '^': 'XOR',
    '~': 'COMP',
    '=': 'EQ',
    '!': 'NOT',
    '>': 'GT',
    '<': 'LT',
    '+': 'ADD',
    '-': 'SUB',
    '*': 'MUL',
    '/': 'DIV',
    '%': 'MOD',
    '@': 'ROOT',
    '?': 'OPT',
}

OPENERS = frozenset(('LPAREN', 'LBRACK', 'LBRACE'))
CLOSERS = frozenset(('RPAREN', 'RBRACK', 'RBRACE'))

KEYWORDS = {
    'null': ('NULL', None),
    'true': ('BOOLEAN', True),
    'false': ('BOOLEAN', False),
}

ESCAPES = {
    'a': '\a',
    'b': '\b',
    'e': '\x1b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'v': '\v',
    '\\': '\\',
    "'": "'",
    '"': '"',
}

BASES = {'b': 2, 'o': 8, 'x': 16}

HEX_DIGITS = frozenset(string.hexdigits)


def is_digit(c: str) -> bool:
    return '0' <= c <= '9'


def is_ident_start(c: str) -> bool:
    return c.isascii() and (c.isalpha() or c == '_')


def is_ident_char(c: str) -> bool:
    return c.isascii() and (c.isalnum() or c == '_')


class ExprLexer:
    '''
    Scans one expression into a flat list of lexemes.

    Each lexeme is a `lark.Token` whose `type` names the lexeme kind, whose
    `value` is the payload (the float of a number, the decoded string, the
    identifier name, or the operator text) and whose `line` is the source
    line it starts on.

    Scanning starts at `pos` and stops at the end of `text`, or at the first
    occurrence of `term` that is not nested inside brackets. `pos` and `line`
    are left just before the terminator for the caller to continue from.
    '''

    def __init__(self, text: str, pos: int = 0, line: int = 1):
        self.text = text
        self.pos = pos
        self.line = line

    def _peek(self, offset: int = 0) -> str:
        p = self.pos + offset
        return self.text[p] if p < len(self.text) else ''

    def lex(self, term: str | None = None) -> list[Token]:
        text = self.text
        out: list[Token] = []
        depth = 0

        while self.pos < len(text):
            if term and depth <= 0 and text.startswith(term, self.pos):
                break

            c = text[self.pos]
            if c == '\n':
                self.line += 1
                self.pos += 1
                continue
            if c.isspace():
                self.pos += 1
                continue

            if c == '"' or c == "'":
                tok = self._string(c)
            elif is_digit(c):
                tok = self._number()
            elif is_ident_start(c):
                tok = self._ident()
            elif (kind := OPERATORS.get(text[self.pos : self.pos + 2])) is not None:
                tok = Token(kind, text[self.pos : self.pos + 2], line=self.line)
                self.pos += 2
            elif (kind := OPERATORS.get(c)) is not None:
                tok = Token(kind, c, line=self.line)
                self.pos += 1
            else:
                raise syntax_error('unexpected character', self.line)

            if tok.type in OPENERS:
                depth += 1
            elif tok.type in CLOSERS:
                depth -= 1
            out.append(tok)

        if is_tracing:
            trace('Lexed expression: %s', [t.type for t in out])
        return out

    def _string(self, quote: str) -> Token:
        line = self.line
        text = self.text
        self.pos += 1
        buf = []

        while True:
            if self.pos >= len(text):
                raise syntax_error('unterminated string', line)
            c = text[self.pos]
            self.pos += 1
            if c == quote:
                break
            if c == '\n':
                self.line += 1
            if c != '\\':
                buf.append(c)
                continue

            e = self._peek()
            self.pos += 1
            if e == 'x':
                hi, lo = self._peek(), self._peek(1)
                if hi not in HEX_DIGITS or lo not in HEX_DIGITS:
                    raise syntax_error('invalid hex literal', self.line)
                buf.append(chr(int(hi + lo, 16)))
                self.pos += 2
            elif (r := ESCAPES.get(e)) is not None:
                buf.append(r)
            else:
                raise syntax_error('invalid string escape', self.line)

        return Token('STRING', ''.join(buf), line=line)

    def _digits(self, base: int) -> str:
        start = self.pos
        while (c := self._peek()) and c.isascii():
            if base == 16 and c not in HEX_DIGITS:
                break
            if base != 16 and not ('0' <= c < chr(ord('0') + base)):
                break
            self.pos += 1
        return self.text[start : self.pos]

    def _number(self) -> Token:
        start = self.pos

        if self._peek() == '0' and (base := BASES.get(self._peek(1))):
            self.pos += 2
            digits = self._digits(base)
            if not digits:
                raise syntax_error('expected digits after base prefix', self.line)
            number = float(int(digits, base))
        else:
            if self._peek() == '0' and is_digit(self._peek(1)):
                raise syntax_error('decimal literal with leading zero', self.line)

            self._digits(10)
            # A dot only belongs to the literal when a digit follows, so that
            # `1..5` and `1.length()` keep their dots.
            if self._peek() == '.' and is_digit(self._peek(1)):
                self.pos += 1
                self._digits(10)

            if self._peek() in ('e', 'E'):
                self.pos += 1
                if self._peek() in ('+', '-'):
                    self.pos += 1
                if not self._digits(10):
                    raise syntax_error('exponent cannot be empty', self.line)

            number = float(self.text[start : self.pos])

        c = self._peek()
        if c and not (c in string.punctuation or c.isspace()):
            raise syntax_error('unexpected character', self.line)

        return Token('NUMBER', number, line=self.line)

    def _ident(self) -> Token:
        start = self.pos
        while is_ident_char(self._peek()):
            self.pos += 1
        name = self.text[start : self.pos]

        if (kw := KEYWORDS.get(name)) is not None:
            return Token(kw[0], kw[1], line=self.line)
        return Token('IDENT', name, line=self.line)


def lex(text: str, term: str | None = None) -> list[Token]:
    return ExprLexer(text).lex(term)
