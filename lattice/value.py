import copy
import json
import math
from abc import ABC, abstractmethod

from .context import Kind, Value
from .errors import ErrorKind, LatticeError

type Index = int | str


class _Missing:
    def __repr__(self) -> str:
        return 'MISSING'


# Returned by `ValueInterface.get` for absent positions and keys, since a
# backend may well use `None` for JSON null.
MISSING = _Missing()


class ValueInterface(ABC):
    '''
    The operations the engine needs from a JSON backend.

    The engine never inspects backend values directly: every kind check,
    scalar read and container access goes through these methods, so any
    representation works as long as it honors them.
    '''

    @abstractmethod
    def parse(self, text: str) -> Value:
        pass

    @abstractmethod
    def print(self, val: Value) -> str:
        pass

    def free(self, val: Value) -> None:
        pass

    @abstractmethod
    def create(self, kind: Kind, literal: bool | float | str | None = None) -> Value:
        pass

    @abstractmethod
    def clone(self, val: Value) -> Value:
        pass

    @abstractmethod
    def type(self, val: Value) -> Kind:
        pass

    @abstractmethod
    def value(self, val: Value) -> bool | float | str | None:
        pass

    @abstractmethod
    def length(self, val: Value) -> int:
        pass

    @abstractmethod
    def get(self, val: Value, index: Index) -> Value:
        '''Returns `MISSING` when the index or key is absent.'''

    @abstractmethod
    def add(self, target: Value, key: str | None, val: Value) -> None:
        pass

    @abstractmethod
    def keys(self, val: Value) -> list[str]:
        pass


def _reject_duplicates(pairs: list[tuple[str, Value]]) -> dict[str, Value]:
    obj = {}
    for key, val in pairs:
        if key in obj:
            raise ValueError(f'duplicate object key {key!r}')
        obj[key] = val
    return obj


def _plain(val: Value) -> Value:
    # Whole floats print as integers, as they would have been written in JSON.
    if isinstance(val, float):
        if math.isfinite(val) and val == math.floor(val) and abs(val) < 2**63:
            return int(val)
        return val
    if isinstance(val, list):
        return [_plain(v) for v in val]
    if isinstance(val, dict):
        return {k: _plain(v) for k, v in val.items()}
    return val


class PythonValues(ValueInterface):
    '''Backend over the plain objects produced by `json.loads`.'''

    def parse(self, text: str) -> Value:
        try:
            return json.loads(
                text, object_pairs_hook=_reject_duplicates, parse_int=float
            )
        except ValueError as e:
            raise LatticeError(ErrorKind.JSON, f'failed to parse JSON: {e}') from e

    def print(self, val: Value) -> str:
        try:
            return json.dumps(_plain(val), ensure_ascii=False, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            raise LatticeError(
                ErrorKind.JSON, f'failed to serialise value: {e}'
            ) from e

    def create(self, kind: Kind, literal: bool | float | str | None = None) -> Value:
        match kind:
            case Kind.NULL:
                return None
            case Kind.BOOLEAN:
                return bool(literal)
            case Kind.NUMBER:
                return float(literal or 0)
            case Kind.STRING:
                return '' if literal is None else str(literal)
            case Kind.ARRAY:
                return []
            case Kind.OBJECT:
                return {}

    def clone(self, val: Value) -> Value:
        if isinstance(val, (list, dict)):
            return copy.deepcopy(val)
        return val

    def type(self, val: Value) -> Kind:
        if val is None:
            return Kind.NULL
        if isinstance(val, bool):
            return Kind.BOOLEAN
        if isinstance(val, (int, float)):
            return Kind.NUMBER
        if isinstance(val, str):
            return Kind.STRING
        if isinstance(val, list):
            return Kind.ARRAY
        if isinstance(val, dict):
            return Kind.OBJECT
        raise LatticeError(ErrorKind.JSON, f'not a JSON value: {type(val).__name__}')

    def value(self, val: Value) -> bool | float | str | None:
        if isinstance(val, bool) or isinstance(val, str):
            return val
        if isinstance(val, (int, float)):
            try:
                return float(val)
            except OverflowError:
                return math.inf if val > 0 else -math.inf
        return None

    def length(self, val: Value) -> int:
        if isinstance(val, (str, list, dict)):
            return len(val)
        return 0

    def get(self, val: Value, index: Index) -> Value:
        if isinstance(val, list) and isinstance(index, int):
            if 0 <= index < len(val):
                return val[index]
        elif isinstance(val, dict) and isinstance(index, str):
            return val.get(index, MISSING)
        return MISSING

    def add(self, target: Value, key: str | None, val: Value) -> None:
        if isinstance(target, list):
            target.append(val)
        elif isinstance(target, dict):
            assert key is not None
            target[key] = val

    def keys(self, val: Value) -> list[str]:
        if isinstance(val, dict):
            return list(val)
        return []
