from dataclasses import dataclass
from typing import Callable, Sequence

from .errors import ErrorKind, LatticeError


@dataclass
class Options:
    '''
    Settings shared by parsing and evaluation.

    search: directories tried in order for `$<path>` includes; the current
        directory when unset.
    resolve: maps an include path to template source, replacing the
        filesystem search. Returning `None` fails the include.
    escape: replaces the built-in entity escaping of `$[...]`.
    ignore_emit_zero: accept a sink that reports zero bytes written.
    '''

    search: Sequence[str] | None = None
    resolve: Callable[[str], str | None] | None = None
    escape: Callable[[str], str] | None = None
    ignore_emit_zero: bool = False

    def __post_init__(self):
        if isinstance(self.search, (str, bytes)):
            raise LatticeError(ErrorKind.OPTIONS, 'search must be a list of directories')
        for name in ('resolve', 'escape'):
            if (f := getattr(self, name)) is not None and not callable(f):
                raise LatticeError(ErrorKind.OPTIONS, f'{name} must be callable')
