import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lattice.errors import ErrorKind, LatticeError
from lattice.lex import ExprLexer, lex


class TestLex(unittest.TestCase):
    def types(self, text: str, term: str | None = None) -> list[str]:
        return [t.type for t in lex(text, term)]

    def lex_error(self, text: str, msg: str, line: int | None = None):
        with self.assertRaises(LatticeError) as cm:
            lex(text)
        self.assertIs(cm.exception.kind, ErrorKind.SYNTAX)
        self.assertIn(msg, cm.exception.message)
        if line is not None:
            self.assertEqual(cm.exception.line, line)

    def test_operators(self):
        self.assertEqual(
            self.types('a || b && !c'), ['IDENT', 'EITHER', 'IDENT', 'BOTH', 'NOT', 'IDENT']
        )
        self.assertEqual(self.types('1 ** 2 // 3'), ['NUMBER', 'EXP', 'NUMBER', 'QUOT', 'NUMBER'])
        self.assertEqual(self.types('a|b&c^~d'), ['IDENT', 'OR', 'IDENT', 'AND', 'IDENT', 'XOR', 'COMP', 'IDENT'])
        self.assertEqual(self.types('a = b == c != d'), ['IDENT', 'EQ', 'IDENT', 'EQ', 'IDENT', 'NEQ', 'IDENT'])
        self.assertEqual(self.types('<= < >= >'), ['LTE', 'LT', 'GTE', 'GT'])
        self.assertEqual(self.types('@ ? :'), ['ROOT', 'OPT', 'COLON'])

    def test_keywords(self):
        toks = lex('null true false nullish')
        self.assertEqual([t.type for t in toks], ['NULL', 'BOOLEAN', 'BOOLEAN', 'IDENT'])
        self.assertEqual([t.value for t in toks], [None, True, False, 'nullish'])

    def test_bases(self):
        for text, value in (('0b101', 5), ('0o17', 15), ('0x1F', 31), ('0xff', 255), ('0', 0)):
            with self.subTest(text=text):
                (tok,) = lex(text)
                self.assertEqual(tok.type, 'NUMBER')
                self.assertEqual(tok.value, value)

        self.lex_error('0x', 'expected digits after base prefix')
        self.lex_error('0b2', 'expected digits after base prefix')

    def test_decimals(self):
        self.assertEqual([t.value for t in lex('1.5 2e3 4E-1 10')], [1.5, 2000.0, 0.4, 10.0])
        self.lex_error('0123', 'decimal literal with leading zero')
        self.lex_error('1e', 'exponent cannot be empty')
        self.lex_error('1e+', 'exponent cannot be empty')
        self.lex_error('12abc', 'unexpected character')

    def test_dot_after_number(self):
        self.assertEqual(self.types('1..5'), ['NUMBER', 'DOT', 'DOT', 'NUMBER'])
        self.assertEqual(self.types('1.length()'), ['NUMBER', 'DOT', 'IDENT', 'LPAREN', 'RPAREN'])

    def test_strings(self):
        (tok,) = lex(r'"a\tb\n\x41\\\'"')
        self.assertEqual(tok.value, 'a\tb\nA\\\'')
        (tok,) = lex(r"'say \"hi\"'")
        self.assertEqual(tok.value, 'say "hi"')

        self.lex_error(r'"\q"', 'invalid string escape')
        self.lex_error(r'"\xZ1"', 'invalid hex literal')
        self.lex_error('"open', 'unterminated string')

    def test_lines(self):
        toks = lex('a\n+\n\nb')
        self.assertEqual([t.line for t in toks], [1, 2, 4])
        self.lex_error('a\n\n#', 'unexpected character', line=3)

    def test_terminator(self):
        lexer = ExprLexer('x[1] ] rest', 0)
        toks = lexer.lex(']')
        self.assertEqual([t.type for t in toks], ['IDENT', 'LBRACK', 'NUMBER', 'RBRACK'])
        self.assertEqual(lexer.text[lexer.pos :], '] rest')

        # Terminators inside strings or brackets do not count.
        self.assertEqual(self.types('"a:b" : c', ':'), ['STRING'])
        self.assertEqual(self.types('{a: 1}: c', ':'), ['LBRACE', 'IDENT', 'COLON', 'NUMBER', 'RBRACE'])
        self.assertEqual(self.types('0..3', '..'), ['NUMBER'])


if __name__ == '__main__':
    unittest.main()
