import math
from contextlib import contextmanager
from typing import Callable, override

from lark import Token, Tree
from lark.visitors import Interpreter

from .context import Kind, Value, is_tracing, is_truthy, is_whole, trace, value_eq
from .errors import ErrorKind, LatticeError, syntax_error, type_error, value_error
from .methods import call_method, repeat
from .options import Options
from .parse import line_of
from .template import Directive
from .value import MISSING, ValueInterface

type Emit = Callable[[str], int]

# Bitwise operators work on the 64-bit unsigned form of whole numbers.
MASK = (1 << 64) - 1

_ENTITIES = str.maketrans({c: f'&#{ord(c)};' for c in '&\'"<>'})


def escape_entities(s: str) -> str:
    return s.translate(_ENTITIES)


def _div_zero(a: float, b: float) -> float:
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _floor(x: float) -> float:
    return float(math.floor(x)) if math.isfinite(x) else x


def _pow(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        if a < 0 and is_whole(b) and b % 2 == 1:
            return -math.inf
        return math.inf
    except ValueError:
        # Zero to a negative power, or a negative base to a fractional one.
        return math.inf if a == 0 else math.nan


def arith(op: str, a: float, b: float) -> float:
    '''Floating-point arithmetic with IEEE results in place of exceptions.'''
    match op:
        case 'add':
            return a + b
        case 'sub':
            return a - b
        case 'mul':
            return a * b
        case 'div':
            return a / b if b != 0 else _div_zero(a, b)
        case 'quot':
            return _floor(a / b) if b != 0 else _div_zero(a, b)
        case 'mod':
            if b == 0 or math.isinf(a):
                return math.nan
            return math.fmod(a, b)
        case 'exp':
            return _pow(a, b)
    raise ValueError(op)


class Engine(Interpreter):
    '''
    Expands a resolved token tree against a root value.

    Statements are walked by `run`; expressions are `lark.Tree`s dispatched by
    the `Interpreter` to the method named after each node. The current scope
    is switched with `_push` for loops and `with` blocks.
    '''

    def __init__(
        self,
        emit: Emit,
        iface: ValueInterface,
        opts: Options | None = None,
    ):
        super().__init__()
        self._emit = emit
        self.iface = iface
        self.opts = opts or Options()
        self._scope: Value = None
        self.written = 0

    @classmethod
    def debug_node(cls, node: Tree | Token) -> str:
        if isinstance(node, Token):
            return f'{node.type}({node.value!r})'
        chs = ', '.join(cls.debug_node(ch) for ch in node.children)
        return f'{node.data}({chs})'

    @override
    def visit(self, tree: Tree) -> Value:
        if is_tracing:
            trace('[%d] %s', line_of(tree), self.debug_node(tree))
        return super().visit(tree)

    # Unknown nodes are a bug in the parser, not in the template.
    @override
    def __getattr__(self, name: str):
        raise NotImplementedError(name)

    @contextmanager
    def _push(self, scope: Value):
        old = self._scope
        self._scope = scope
        try:
            yield
        finally:
            self._scope = old

    def run(self, body: list[Directive], root: Value) -> int:
        self._scope = root
        self._run_block(body)
        return self.written

    # Statements

    def _put(self, text: str, line: int):
        if not text:
            return
        try:
            n = self._emit(text)
        except OSError as e:
            raise LatticeError(ErrorKind.IO, f'failed to write output: {e}', line) from e
        if not n and not self.opts.ignore_emit_zero:
            raise LatticeError(ErrorKind.IO, 'failed to write output', line)
        self.written += n or 0

    def _run_block(self, body: list[Directive]):
        # Whether the previous sibling is an if/elif, and whether its chain
        # already took a branch.
        in_chain = False
        taken = False

        for d in body:
            if d.kind in ('elif', 'else'):
                if not in_chain:
                    raise syntax_error('unexpected subclause', d.line)
                if taken:
                    in_chain = d.kind == 'elif'
                    continue

            match d.kind:
                case 'span':
                    self._put(d.text, d.line)
                case 'sub_esc' | 'sub_raw':
                    self._substitute(d)
                case 'include':
                    self._include(d)
                case 'if' | 'elif':
                    taken = is_truthy(self.visit(d.exprs[0]), self.iface)
                    if taken:
                        self._run_block(d.body)
                case 'else':
                    self._run_block(d.body)
                case 'switch':
                    self._switch(d)
                case 'for_exc' | 'for_inc' | 'for_iter':
                    self._for(d)
                case 'with':
                    val = self.visit(d.exprs[0])
                    try:
                        with self._push(val):
                            self._run_block(d.body)
                    finally:
                        self.iface.free(val)
                case _:
                    raise syntax_error(f'unexpected {d.kind}', d.line)

            in_chain = d.kind in ('if', 'elif')

    def _substitute(self, d: Directive):
        iface = self.iface
        val = self.visit(d.exprs[0])
        if iface.type(val) == Kind.STRING:
            s = iface.value(val)
        else:
            try:
                s = iface.print(val)
            except LatticeError as e:
                raise LatticeError(
                    ErrorKind.JSON, 'failed to serialise substitution value', d.line
                ) from e

        if d.kind == 'sub_esc':
            s = self.opts.escape(s) if self.opts.escape else escape_entities(s)
        self._put(s, d.line)

    def _include(self, d: Directive):
        try:
            self._run_block(d.body)
        except LatticeError as e:
            if e.file is None:
                e.file = d.text
            raise

    def _switch(self, d: Directive):
        subject = self.visit(d.exprs[0])
        for i, clause in enumerate(d.body):
            if clause.kind == 'default':
                if i != len(d.body) - 1:
                    raise syntax_error('cannot have case after default', d.body[i + 1].line)
                self._run_block(clause.body)
                return
            if value_eq(subject, self.visit(clause.exprs[0]), self.iface):
                self._run_block(clause.body)
                return

    def _iterate(self, d: Directive):
        iface = self.iface

        if d.kind == 'for_iter':
            src = self.visit(d.exprs[0])
            match iface.type(src):
                case Kind.STRING:
                    for c in iface.value(src):
                        yield iface.create(Kind.STRING, c)
                case Kind.ARRAY:
                    for i in range(iface.length(src)):
                        yield iface.clone(iface.get(src, i))
                case Kind.OBJECT:
                    for key in iface.keys(src):
                        yield iface.create(Kind.STRING, key)
                case _:
                    raise type_error('loop values must be iterable', line_of(d.exprs[0]))
            return

        lo, hi = (self.visit(e) for e in d.exprs)
        if iface.type(lo) != Kind.NUMBER or iface.type(hi) != Kind.NUMBER:
            raise type_error('loop indices must be numbers', d.line)

        n, end = iface.value(lo), iface.value(hi)
        while n < end or (d.kind == 'for_inc' and n == end):
            yield iface.create(Kind.NUMBER, n)
            n += 1

    def _bind(self, name: str, val: Value) -> Value:
        iface = self.iface
        scope = iface.create(Kind.OBJECT)
        for key in iface.keys(self._scope):
            if key != name:
                iface.add(scope, key, iface.get(self._scope, key))
        iface.add(scope, name, val)
        return scope

    def _for(self, d: Directive):
        name = d.text
        anonymous = name == '_'
        if not anonymous and self.iface.type(self._scope) != Kind.OBJECT:
            raise type_error('cannot bind in non-object scope', d.line)

        for item in self._iterate(d):
            if anonymous:
                self._run_block(d.body)
                continue
            scope = self._bind(name, item)
            try:
                with self._push(scope):
                    self._run_block(d.body)
            finally:
                self.iface.free(scope)

    # Expressions

    def _literal(self, tree: Tree, kind: Kind) -> Value:
        return self.iface.create(kind, tree.children[0].value)

    def null(self, tree: Tree) -> Value:
        return self.iface.create(Kind.NULL)

    def boolean(self, tree: Tree) -> Value:
        return self._literal(tree, Kind.BOOLEAN)

    def number(self, tree: Tree) -> Value:
        return self._literal(tree, Kind.NUMBER)

    def string(self, tree: Tree) -> Value:
        return self._literal(tree, Kind.STRING)

    def array(self, tree: Tree) -> Value:
        arr = self.iface.create(Kind.ARRAY)
        for item in tree.children:
            self.iface.add(arr, None, self.visit(item))
        return arr

    def object(self, tree: Tree) -> Value:
        iface = self.iface
        obj = iface.create(Kind.OBJECT)
        for pair in tree.children:
            key_tree, val_tree = pair.children
            key = self.visit(key_tree)
            match iface.type(key):
                case Kind.NULL:
                    continue
                case Kind.STRING:
                    iface.add(obj, iface.value(key), self.visit(val_tree))
                case _:
                    raise type_error('object key must be string or null', line_of(key_tree))
        return obj

    def either(self, tree: Tree) -> Value:
        lhs = self.visit(tree.children[0])
        if is_truthy(lhs, self.iface):
            return lhs
        return self.visit(tree.children[1])

    def both(self, tree: Tree) -> Value:
        lhs = self.visit(tree.children[0])
        if not is_truthy(lhs, self.iface):
            return lhs
        return self.visit(tree.children[1])

    def logical_not(self, tree: Tree) -> Value:
        val = self.visit(tree.children[0])
        return self.iface.create(Kind.BOOLEAN, not is_truthy(val, self.iface))

    def eq(self, tree: Tree) -> Value:
        lhs, rhs = (self.visit(ch) for ch in tree.children)
        return self.iface.create(Kind.BOOLEAN, value_eq(lhs, rhs, self.iface))

    def neq(self, tree: Tree) -> Value:
        lhs, rhs = (self.visit(ch) for ch in tree.children)
        return self.iface.create(Kind.BOOLEAN, not value_eq(lhs, rhs, self.iface))

    def _compare(self, tree: Tree) -> Value:
        iface = self.iface
        lhs, rhs = (self.visit(ch) for ch in tree.children)
        kind = iface.type(lhs)
        if kind != iface.type(rhs):
            raise type_error('can only compare similar types', line_of(tree))
        if kind not in (Kind.NUMBER, Kind.STRING):
            raise type_error('can only compare number or string', line_of(tree))

        a, b = iface.value(lhs), iface.value(rhs)
        match tree.data:
            case 'lt':
                r = a < b
            case 'lte':
                r = a <= b
            case 'gt':
                r = a > b
            case _:
                r = a >= b
        return iface.create(Kind.BOOLEAN, r)

    lt = lte = gt = gte = _compare

    def _number(self, tree: Tree, msg: str) -> float:
        val = self.visit(tree)
        if self.iface.type(val) != Kind.NUMBER:
            raise type_error(msg, line_of(tree))
        return self.iface.value(val)

    def _arith(self, tree: Tree) -> Value:
        iface = self.iface
        op = tree.data
        lhs_tree, rhs_tree = tree.children

        lhs = self.visit(lhs_tree)
        kind = iface.type(lhs)
        sequence = kind.is_sequence and op in ('add', 'mul')
        if kind != Kind.NUMBER and not sequence:
            raise type_error('left operand must be a number', line_of(lhs_tree))

        if sequence and op == 'add':
            rhs = self.visit(rhs_tree)
            if iface.type(rhs) != kind:
                raise type_error(
                    'sequence concatenation requires similar types', line_of(tree)
                )
            return self._concat(lhs, rhs)

        count = self._number(rhs_tree, 'right operand must be a number')
        if sequence:
            return repeat(iface, lhs, count, line_of(rhs_tree))
        return iface.create(Kind.NUMBER, arith(op, iface.value(lhs), count))

    add = sub = mul = div = quot = exp = mod = _arith

    def _concat(self, lhs: Value, rhs: Value) -> Value:
        iface = self.iface
        if iface.type(lhs) == Kind.STRING:
            return iface.create(Kind.STRING, iface.value(lhs) + iface.value(rhs))

        out = iface.create(Kind.ARRAY)
        for seq in (lhs, rhs):
            for i in range(iface.length(seq)):
                iface.add(out, None, iface.clone(iface.get(seq, i)))
        return out

    def _bits(self, tree: Tree) -> int:
        n = self._number(tree, 'bitwise operands must be numbers')
        if not is_whole(n):
            raise value_error('bitwise operands must be whole numbers', line_of(tree))
        return int(n) & MASK

    def _bitwise(self, tree: Tree) -> Value:
        a = self._bits(tree.children[0])
        b = self._bits(tree.children[1])
        match tree.data:
            case 'bit_and':
                r = a & b
            case 'bit_or':
                r = a | b
            case _:
                r = a ^ b
        return self.iface.create(Kind.NUMBER, float(r))

    bit_and = bit_or = bit_xor = _bitwise

    def comp(self, tree: Tree) -> Value:
        return self.iface.create(Kind.NUMBER, float(~self._bits(tree.children[0]) & MASK))

    def pos(self, tree: Tree) -> Value:
        n = self._number(tree.children[0], 'operand must be number')
        return self.iface.create(Kind.NUMBER, n)

    def neg(self, tree: Tree) -> Value:
        n = self._number(tree.children[0], 'operand must be number')
        return self.iface.create(Kind.NUMBER, -n)

    def root(self, tree: Tree) -> Value:
        return self.iface.clone(self._scope)

    def _member(self, target: Value, name: Token, line: int) -> Value:
        if self.iface.type(target) != Kind.OBJECT:
            raise type_error('can only lookup properties of object', line)
        val = self.iface.get(target, str(name))
        if val is MISSING:
            raise LatticeError(ErrorKind.NAME, f"'{name}' is undefined", line)
        return val

    def ident(self, tree: Tree) -> Value:
        return self._member(self._scope, tree.children[0], line_of(tree))

    def lookup(self, tree: Tree) -> Value:
        target = self.visit(tree.children[0])
        return self._member(target, tree.children[1], line_of(tree))

    def method(self, tree: Tree) -> Value:
        target_tree, name, args_tree = tree.children
        this = self.visit(target_tree)
        args = [self.visit(arg) for arg in args_tree.children]
        return call_method(self.iface, str(name), this, args, line_of(tree))

    def _position(self, tree: Tree, length: int) -> int:
        n = self._number(tree, 'index must be a number')
        if not is_whole(n):
            raise value_error('indices must be whole numbers', line_of(tree))
        i = int(n)
        return i + length if i < 0 else i

    def index(self, tree: Tree) -> Value:
        iface = self.iface
        target = self.visit(tree.children[0])
        kind = iface.type(target)
        line = line_of(tree)

        if kind == Kind.OBJECT:
            if len(tree.children) > 2:
                raise type_error('cannot range-index an object', line)
            key = self.visit(tree.children[1])
            if iface.type(key) != Kind.STRING:
                raise type_error('index must be a string', line_of(tree.children[1]))
            val = iface.get(target, iface.value(key))
            if val is MISSING:
                raise value_error('index out of range', line)
            return val

        if not kind.is_sequence:
            raise type_error('can only index string, array, or object', line)

        length = iface.length(target)
        if len(tree.children) == 2:
            i = self._position(tree.children[1], length)
            if not 0 <= i < length:
                raise value_error('index out of range', line)
            if kind == Kind.STRING:
                return iface.create(Kind.STRING, iface.value(target)[i])
            return iface.get(target, i)

        start, stop = (
            min(max(self._position(ch, length), 0), length) for ch in tree.children[1:]
        )
        if kind == Kind.STRING:
            return iface.create(Kind.STRING, iface.value(target)[start:stop])

        out = iface.create(Kind.ARRAY)
        for i in range(start, stop):
            iface.add(out, None, iface.clone(iface.get(target, i)))
        return out

    def ternary(self, tree: Tree) -> Value:
        cond, then, other = tree.children
        if is_truthy(self.visit(cond), self.iface):
            return self.visit(then)
        return self.visit(other)
