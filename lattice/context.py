import os
import math
import logging
from enum import Enum
from typing import Any

from .util import log

is_tracing = os.environ.get('TRACE') == '1' and log.isEnabledFor(logging.DEBUG)
trace = log.debug if is_tracing else lambda *_: None

# Any value produced or consumed by a `ValueInterface` backend.
type Value = Any


class Kind(Enum):
    NULL = 'null'
    BOOLEAN = 'boolean'
    NUMBER = 'number'
    STRING = 'string'
    ARRAY = 'array'
    OBJECT = 'object'

    @property
    def is_sequence(self) -> bool:
        return self is Kind.STRING or self is Kind.ARRAY


def is_whole(n: float) -> bool:
    return math.isfinite(n) and n == math.floor(n)


def is_truthy(val: Value, iface) -> bool:
    match iface.type(val):
        case Kind.NULL:
            return False
        case Kind.BOOLEAN | Kind.NUMBER:
            return bool(iface.value(val))
        case _:
            # Strings, arrays and objects alike.
            return iface.length(val) > 0


def value_eq(lhs: Value, rhs: Value, iface) -> bool:
    kind = iface.type(lhs)
    if kind != iface.type(rhs):
        return False

    match kind:
        case Kind.NULL:
            return True
        case Kind.BOOLEAN | Kind.NUMBER | Kind.STRING:
            return iface.value(lhs) == iface.value(rhs)
        case _:
            # Containers never compare equal, not even to themselves.
            return False
