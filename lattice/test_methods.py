import os
import sys
import time
import unittest

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lattice import LatticeError, render
from lattice.methods import METHODS


class TestMethods(unittest.TestCase):
    def call(self, expr: str, root=None) -> str:
        return render('${' + expr + '}', {} if root is None else root)

    def check(self, cases: dict[str, str], root=None):
        for expr, expected in cases.items():
            with self.subTest(expr=expr):
                self.assertEqual(self.call(expr, root), expected)

    def call_error(self, expr: str, msg: str):
        with self.assertRaises(LatticeError) as cm:
            self.call(expr)
        self.assertIn(msg, str(cm.exception))

    def test_arity(self):
        self.call_error('"a".upper(1)', 'Value error: too many arguments to method')
        self.call_error('"a".replace("a")', 'Value error: not enough arguments to method')
        # Arity is checked before the receiver.
        self.call_error('null.join()', 'not enough arguments to method')
        self.assertEqual(self.call('"a".nonexistent(1, 2, 3)'), 'null')
        self.assertEqual(len(METHODS), 20)

    def test_boolean_type_string(self):
        self.check({
            '0.boolean()': 'false',
            '"x".boolean()': 'true',
            '[].boolean()': 'false',
            'null.type()': 'null',
            '1.type()': 'number',
            '"".type()': 'string',
            '{}.type()': 'object',
            '[1].type()': 'array',
            'true.type()': 'boolean',
            '[1, "a"].string()': '[1,"a"]',
            '"a".string()': '"a"',
        })

    def test_search(self):
        self.check({
            '"hello".contains("ell")': 'true',
            '"hello".contains("z")': 'false',
            '"hello".find("l")': '2',
            '"hello".find("z")': '-1',
            '[1, "a", null].find(null)': '2',
            '[1, 2].contains(2)': 'true',
            '[[1]].contains([1])': 'false',
            '"hello".find(1)': 'null',
            '{"a": 1}.contains("a")': 'null',
        })

    def test_join(self):
        self.check({
            '["a", "b"].join("-")': 'a-b',
            '[1, 2, 3].join(",")': '1,2,3',
            '[].join(",")': '',
            '["a"].join(1)': 'null',
            '"ab".join(",")': 'null',
        })

    def test_keys_values(self):
        root = {'o': {'b': 1, 'a': [2]}}
        self.check({
            'o.keys()': '["b","a"]',
            'o.values()': '[1,[2]]',
            '["x", "y"].keys()': '[0,1]',
            '["x", "y"].values()': '["x","y"]',
            '"s".keys()': 'null',
        }, root)

    def test_length_case(self):
        self.check({
            '"héllo".length()': '5',
            '[1, 2].length()': '2',
            '{"a": 1}.length()': '1',
            '1.length()': 'null',
            '"MiXed".lower()': 'mixed',
            '"MiXed".upper()': 'MIXED',
            '1.upper()': 'null',
        })

    def test_numbers(self):
        self.check({
            '1.nan()': 'false',
            '(0/0).nan()': 'true',
            '(1/0).real()': 'false',
            '1.5.real()': 'true',
            '"x".nan()': 'null',
            'null.number()': '0',
            'true.number()': '1',
            '" 12.5kg".number()': '12.5',
            '"-3e2".number()': '-300',
            '"abc".number()': '0',
            '[].number()': 'null',
            '2.5.round()': '3',
            '(-2.5).round()': '-3',
            '2.4.round()': '2',
            '(1/0).round()': 'Infinity',
            # Largest double below one half.
            '0.49999999999999994.round()': '0',
            '(-1.4999999999999998).round()': '-1',
        })

    def test_repeat(self):
        self.check({
            '"ab".repeat(2)': 'abab',
            '[1].repeat(3)': '[1,1,1]',
            '"ab".repeat("2")': 'null',
            '1.repeat(2)': 'null',
        })
        self.call_error('"ab".repeat(-1)', 'Value error')

    def test_replace_reverse_sort(self):
        self.check({
            '"a-b-c".replace("-", "+")': 'a+b+c',
            '"abc".replace(1, "x")': 'null',
            '"abc".reverse()': 'cba',
            '[1, [2], 3].reverse()': '[3,[2],1]',
            '1.reverse()': 'null',
            '[3, 1, 2].sort()': '[1,2,3]',
            '["b", "a"].sort()': '["a","b"]',
            '[].sort()': '[]',
            '[1, "a"].sort()': 'null',
            '[[1]].sort()': 'null',
        })

    def test_datetime(self):
        year = time.strftime('%Y')
        self.assertEqual(self.call('"%Y".datetime()'), year)
        self.assertEqual(self.call('1.datetime()'), 'null')
        self.assertEqual(self.call('f.datetime()', {'f': 'a\x00'}), 'null')


if __name__ == '__main__':
    unittest.main()
