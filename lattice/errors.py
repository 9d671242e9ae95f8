from enum import Enum


class ErrorKind(Enum):
    UNKNOWN = 'Unknown'
    ALLOCATION = 'Memory'
    IO = 'IO'
    OPTIONS = 'Option'
    JSON = 'JSON'
    SYNTAX = 'Syntax'
    TYPE = 'Type'
    VALUE = 'Value'
    NAME = 'Name'
    INCLUDE = 'Include'


class LatticeError(Exception):
    '''
    The single error record of a failed parse or evaluation.

    `line` is 1-based and points at the failing construct; `file` is set once
    the error propagates out of an included template and names the include.
    '''

    def __init__(
        self, kind: ErrorKind, message: str, line: int = 0, file: str | None = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.line = line
        self.file = file

    def __str__(self) -> str:
        return f'{self.kind.value} error: {self.message} ({self.file or "-"}:{self.line})'

    def __repr__(self) -> str:
        return (
            f'LatticeError({self.kind.name}, {self.message!r}, '
            f'line={self.line}, file={self.file!r})'
        )


def syntax_error(msg: str, line: int) -> LatticeError:
    return LatticeError(ErrorKind.SYNTAX, msg, line)


def type_error(msg: str, line: int) -> LatticeError:
    return LatticeError(ErrorKind.TYPE, msg, line)


def value_error(msg: str, line: int) -> LatticeError:
    return LatticeError(ErrorKind.VALUE, msg, line)
