import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lattice.errors import ErrorKind, LatticeError
from lattice.template import lex_template
from lattice.tree import build_tree


def outline(body) -> list:
    '''Kinds of a directive tree, with bodies as nested lists.'''
    out = []
    for d in body:
        out.append(d.kind)
        if d.body:
            out.append(outline(d.body))
    return out


class TestTemplateLexer(unittest.TestCase):
    def lex_error(self, text: str, msg: str, line: int | None = None):
        with self.assertRaises(LatticeError) as cm:
            lex_template(text)
        self.assertIs(cm.exception.kind, ErrorKind.SYNTAX)
        self.assertEqual(cm.exception.message, msg)
        if line is not None:
            self.assertEqual(cm.exception.line, line)

    def test_spans(self):
        (d,) = lex_template('plain\ntext')
        self.assertEqual((d.kind, d.text, d.line), ('span', 'plain\ntext', 1))

        ds = lex_template('cost: $$5 $(note (nested)) done')
        self.assertEqual([x.text for x in ds], ['cost: $5 ', ' done'])

    def test_directives(self):
        ds = lex_template('a $[x] b ${y}\n$<part.txt>')
        self.assertEqual(
            [d.kind for d in ds], ['span', 'sub_esc', 'span', 'sub_raw', 'span', 'include']
        )
        self.assertEqual(ds[-1].text, 'part.txt')
        self.assertEqual(ds[-1].line, 2)

    def test_keywords(self):
        ds = lex_template('$if a:$elif b:$else:$end$switch x:$case 1:$default$end')
        self.assertEqual(
            [d.kind for d in ds],
            ['if', 'elif', 'else', 'end', 'switch', 'case', 'default', 'end'],
        )

    def test_loops(self):
        (d,) = lex_template('$for i from 0..3:')
        self.assertEqual((d.kind, d.text, len(d.exprs)), ('for_exc', 'i', 2))
        (d,) = lex_template('$for i from 0..=3:')
        self.assertEqual(d.kind, 'for_inc')
        (d,) = lex_template('$for item in items:')
        self.assertEqual((d.kind, d.text, len(d.exprs)), ('for_iter', 'item', 1))

    def test_lines(self):
        ds = lex_template('one\n$( a\ncomment )\n$[ x\n ]\n$end')
        self.assertEqual([(d.kind, d.line) for d in ds], [
            ('span', 1), ('span', 3), ('sub_esc', 4), ('span', 5), ('end', 6),
        ])

    def test_errors(self):
        self.lex_error('$(never closed', 'unterminated comment')
        self.lex_error('$[ x', 'expected closing bracket for substitution')
        self.lex_error('${ x ]', 'expected closing bracket for substitution')
        self.lex_error('$<file', 'unterminated include')
        self.lex_error('$', 'expected keyword')
        self.lex_error('$!', 'expected keyword')
        self.lex_error('$iffy x:', 'unknown keyword')
        self.lex_error('$if(x):', 'expected whitespace')
        self.lex_error('$if x', 'expected colon')
        self.lex_error('$for :', 'expected identifier for loop')
        self.lex_error('$for x:', 'expected whitespace')
        self.lex_error('$for x :', 'expected preposition for loop')
        self.lex_error('$for x of y:', 'invalid loop preposition')
        self.lex_error('$for x from 3:', 'expected range')
        self.lex_error('\n\n$if x y:', 'extra tokens in expression', line=3)


class TestTreeBuilder(unittest.TestCase):
    def build(self, text: str) -> list:
        return outline(build_tree(lex_template(text), text.count('\n') + 1))

    def build_error(self, text: str, msg: str, line: int | None = None):
        with self.assertRaises(LatticeError) as cm:
            self.build(text)
        self.assertIs(cm.exception.kind, ErrorKind.SYNTAX)
        self.assertEqual(cm.exception.message, msg)
        if line is not None:
            self.assertEqual(cm.exception.line, line)

    def test_blocks(self):
        self.assertEqual(
            self.build('a$for x in y:b$with x:c$end$end d'),
            ['span', 'for_iter', ['span', 'with', ['span']], 'span'],
        )

    def test_if_chain(self):
        self.assertEqual(
            self.build('$if a:1$elif b:2$else:3$end'),
            ['if', ['span'], 'elif', ['span'], 'else', ['span']],
        )
        # The nested chain ends with its own `$end`.
        self.assertEqual(
            self.build('$if a:$if b:1$else:2$end$else:3$end'),
            ['if', ['if', ['span'], 'else', ['span']], 'else', ['span']],
        )

    def test_subclause_closes_inner_blocks(self):
        self.assertEqual(
            self.build('$if a:$for x in y:B$else:C$end'),
            ['if', ['for_iter', ['span']], 'else', ['span']],
        )
        self.assertEqual(
            self.build('$if a:$with o:$switch x:$case 1:A$elif b:B$end'),
            [
                'if', ['with', ['switch', ['case', ['span']]]],
                'elif', ['span'],
            ],
        )
        self.build_error('$for x in y:a\n$else:b$end', 'unexpected subclause', line=2)
        self.build_error('$with o:$switch x:$default:$else:b$end', 'unexpected subclause')

    def test_switch(self):
        self.assertEqual(
            self.build('$switch x: \n$case 1:one$case 2:two$default:other$end'),
            ['switch', ['case', ['span'], 'case', ['span'], 'default', ['span']]],
        )
        self.assertEqual(self.build('$switch x:$end'), ['switch'])

    def test_errors(self):
        self.build_error('$end', 'unexpected block terminator')
        self.build_error('$if a:\n\nx', 'unexpected end of file', line=3)
        self.build_error('$switch x:$case 1:', 'unexpected end of file')
        self.build_error('$case 1:$end', 'case outside of switch')
        self.build_error('$if a:$case 1:$end', 'case outside of switch')
        self.build_error('$else:x$end', 'unexpected subclause')
        self.build_error('$if a:1$end$else:2$end', 'unexpected subclause')
        self.build_error('$if a:1$else:2$elif b:3$end', 'unexpected subclause')
        self.build_error('$switch x:$[x]$case 1:$end', 'expected case in switch')
        self.build_error(
            '$switch x:$default:a\n$case 1:b$end', 'cannot have case after default', line=2
        )
        self.build_error('$switch x:$default:a$default:b$end', 'cannot have case after default')


if __name__ == '__main__':
    unittest.main()
