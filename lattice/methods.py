import math
import re
import time
from typing import Callable

from .context import Kind, Value, is_truthy, is_whole, value_eq
from .errors import value_error

# Longest decimal prefix, as C `atof` would accept it.
_NUMBER_PREFIX = re.compile(r'\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

type Method = Callable[..., Value]


def _null(iface) -> Value:
    return iface.create(Kind.NULL)


def m_boolean(iface, this: Value) -> Value:
    return iface.create(Kind.BOOLEAN, is_truthy(this, iface))


def _search(iface, this: Value, needle: Value) -> int | None:
    match iface.type(this):
        case Kind.STRING:
            if iface.type(needle) != Kind.STRING:
                return None
            return iface.value(this).find(iface.value(needle))
        case Kind.ARRAY:
            for i in range(iface.length(this)):
                if value_eq(iface.get(this, i), needle, iface):
                    return i
            return -1
    return None


def m_contains(iface, this: Value, needle: Value) -> Value:
    if (i := _search(iface, this, needle)) is None:
        return _null(iface)
    return iface.create(Kind.BOOLEAN, i >= 0)


def m_find(iface, this: Value, needle: Value) -> Value:
    if (i := _search(iface, this, needle)) is None:
        return _null(iface)
    return iface.create(Kind.NUMBER, i)


def m_datetime(iface, this: Value) -> Value:
    if iface.type(this) != Kind.STRING:
        return _null(iface)
    try:
        text = time.strftime(iface.value(this), time.localtime())
    except ValueError:
        return _null(iface)
    return iface.create(Kind.STRING, text)


def m_join(iface, this: Value, sep: Value) -> Value:
    if iface.type(this) != Kind.ARRAY or iface.type(sep) != Kind.STRING:
        return _null(iface)

    parts = []
    for i in range(iface.length(this)):
        item = iface.get(this, i)
        # Non-strings join in their printed form, as substitution shows them.
        if iface.type(item) == Kind.STRING:
            parts.append(iface.value(item))
        else:
            parts.append(iface.print(item))
    return iface.create(Kind.STRING, iface.value(sep).join(parts))


def _members(iface, this: Value, keys: bool) -> Value:
    out = iface.create(Kind.ARRAY)
    match iface.type(this):
        case Kind.ARRAY:
            for i in range(iface.length(this)):
                if keys:
                    iface.add(out, None, iface.create(Kind.NUMBER, i))
                else:
                    iface.add(out, None, iface.clone(iface.get(this, i)))
        case Kind.OBJECT:
            for key in iface.keys(this):
                if keys:
                    iface.add(out, None, iface.create(Kind.STRING, key))
                else:
                    iface.add(out, None, iface.clone(iface.get(this, key)))
        case _:
            return _null(iface)
    return out


def m_keys(iface, this: Value) -> Value:
    return _members(iface, this, keys=True)


def m_values(iface, this: Value) -> Value:
    return _members(iface, this, keys=False)


def m_length(iface, this: Value) -> Value:
    if iface.type(this) in (Kind.NULL, Kind.BOOLEAN, Kind.NUMBER):
        return _null(iface)
    return iface.create(Kind.NUMBER, iface.length(this))


def m_lower(iface, this: Value) -> Value:
    if iface.type(this) != Kind.STRING:
        return _null(iface)
    return iface.create(Kind.STRING, iface.value(this).lower())


def m_upper(iface, this: Value) -> Value:
    if iface.type(this) != Kind.STRING:
        return _null(iface)
    return iface.create(Kind.STRING, iface.value(this).upper())


def m_nan(iface, this: Value) -> Value:
    if iface.type(this) != Kind.NUMBER:
        return _null(iface)
    return iface.create(Kind.BOOLEAN, math.isnan(iface.value(this)))


def m_real(iface, this: Value) -> Value:
    if iface.type(this) != Kind.NUMBER:
        return _null(iface)
    return iface.create(Kind.BOOLEAN, math.isfinite(iface.value(this)))


def m_number(iface, this: Value) -> Value:
    match iface.type(this):
        case Kind.NULL:
            n = 0.0
        case Kind.BOOLEAN | Kind.NUMBER:
            n = float(iface.value(this))
        case Kind.STRING:
            m = _NUMBER_PREFIX.match(iface.value(this))
            n = float(m.group()) if m else 0.0
        case _:
            return _null(iface)
    return iface.create(Kind.NUMBER, n)


def repeat(iface, this: Value, count: float, line: int) -> Value:
    '''Shared by `.repeat(n)` and the `*` operator on sequences.'''
    if not is_whole(count) or count < 0:
        raise value_error('repeat count must be a non-negative whole number', line)

    n = int(count)
    if iface.type(this) == Kind.STRING:
        return iface.create(Kind.STRING, iface.value(this) * n)

    out = iface.create(Kind.ARRAY)
    length = iface.length(this)
    for _ in range(n):
        for i in range(length):
            iface.add(out, None, iface.clone(iface.get(this, i)))
    return out


def m_repeat(iface, this: Value, count: Value, *, line: int) -> Value:
    if iface.type(count) != Kind.NUMBER or not iface.type(this).is_sequence:
        return _null(iface)
    return repeat(iface, this, iface.value(count), line)


def m_replace(iface, this: Value, old: Value, new: Value) -> Value:
    if any(iface.type(v) != Kind.STRING for v in (this, old, new)):
        return _null(iface)
    s = iface.value(this).replace(iface.value(old), iface.value(new))
    return iface.create(Kind.STRING, s)


def m_reverse(iface, this: Value) -> Value:
    match iface.type(this):
        case Kind.STRING:
            return iface.create(Kind.STRING, iface.value(this)[::-1])
        case Kind.ARRAY:
            out = iface.create(Kind.ARRAY)
            for i in reversed(range(iface.length(this))):
                iface.add(out, None, iface.clone(iface.get(this, i)))
            return out
    return _null(iface)


def m_round(iface, this: Value) -> Value:
    if iface.type(this) != Kind.NUMBER:
        return _null(iface)
    n = iface.value(this)
    if math.isfinite(n):
        # Half away from zero, unlike the builtin `round`.
        whole = math.floor(abs(n))
        if abs(n) - whole >= 0.5:
            whole += 1
        n = math.copysign(whole, n)
    return iface.create(Kind.NUMBER, n)


def m_sort(iface, this: Value) -> Value:
    if iface.type(this) != Kind.ARRAY:
        return _null(iface)

    items = [iface.get(this, i) for i in range(iface.length(this))]
    kinds = {iface.type(v) for v in items}
    if len(kinds) > 1 or kinds - {Kind.NUMBER, Kind.STRING}:
        return _null(iface)

    out = iface.create(Kind.ARRAY)
    for v in sorted(items, key=iface.value):
        iface.add(out, None, iface.clone(v))
    return out


def m_string(iface, this: Value) -> Value:
    return iface.create(Kind.STRING, iface.print(this))


def m_type(iface, this: Value) -> Value:
    return iface.create(Kind.STRING, iface.type(this).value)


# Name -> (handler, number of arguments).
METHODS: dict[str, tuple[Method, int]] = {
    'boolean': (m_boolean, 0),
    'contains': (m_contains, 1),
    'find': (m_find, 1),
    'datetime': (m_datetime, 0),
    'join': (m_join, 1),
    'keys': (m_keys, 0),
    'length': (m_length, 0),
    'lower': (m_lower, 0),
    'nan': (m_nan, 0),
    'number': (m_number, 0),
    'real': (m_real, 0),
    'repeat': (m_repeat, 1),
    'replace': (m_replace, 2),
    'reverse': (m_reverse, 0),
    'round': (m_round, 0),
    'sort': (m_sort, 0),
    'string': (m_string, 0),
    'type': (m_type, 0),
    'upper': (m_upper, 0),
    'values': (m_values, 0),
}

# Handlers that report errors against the call site.
_NEEDS_LINE = frozenset((m_repeat,))


def call_method(iface, name: str, this: Value, args: list[Value], line: int) -> Value:
    '''
    Calls the built-in method `name` on `this`.

    Unknown names evaluate to null so that templates can check for optional
    behavior; a known name with the wrong number of arguments is an error.
    Receivers of a kind a method does not handle also give null.
    '''
    if (entry := METHODS.get(name)) is None:
        return _null(iface)

    func, arity = entry
    if len(args) != arity:
        if len(args) > arity:
            raise value_error('too many arguments to method', line)
        raise value_error('not enough arguments to method', line)

    if func in _NEEDS_LINE:
        return func(iface, this, *args, line=line)
    return func(iface, this, *args)
