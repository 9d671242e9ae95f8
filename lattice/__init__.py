from typing import IO

from .context import Kind, Value, trace
from .engine import Emit, Engine, escape_entities
from .errors import ErrorKind, LatticeError
from .include import parse_template
from .options import Options
from .template import Directive
from .util import log, shorten
from .value import MISSING, PythonValues, ValueInterface

__version__ = '0.1.0'

__all__ = [
    'Directive',
    'Emit',
    'Engine',
    'ErrorKind',
    'Kind',
    'LatticeError',
    'MISSING',
    'Options',
    'PythonValues',
    'Value',
    'ValueInterface',
    'escape_entities',
    'lattice',
    'lattice_buffer',
    'lattice_file',
    'parse_template',
    'render',
]


def lattice(
    template: str,
    root: Value,
    emit: Emit,
    iface: ValueInterface | None = None,
    opts: Options | None = None,
) -> int:
    '''
    Expands `template` against `root`, passing the output to `emit` piece by
    piece.

    `emit` receives text and returns the number of bytes it wrote. Returns
    the total, or raises `LatticeError` on the first failure.
    '''
    if iface is None:
        iface = PythonValues()
    if opts is None:
        opts = Options()

    trace('Expanding: %s', shorten(template))
    try:
        body = parse_template(template, opts)
        return Engine(emit, iface, opts).run(body, root)
    except LatticeError as e:
        log.debug('Expansion failed: %s', e)
        raise
    except RecursionError as e:
        raise LatticeError(ErrorKind.UNKNOWN, 'template nested too deeply') from e


def lattice_file(
    template: str,
    root: Value,
    file: IO[str],
    iface: ValueInterface | None = None,
    opts: Options | None = None,
) -> int:
    enc = getattr(file, 'encoding', None) or 'utf-8'

    def emit(text: str) -> int:
        file.write(text)
        return len(text.encode(enc, errors='replace'))

    return lattice(template, root, emit, iface, opts)


def lattice_buffer(
    template: str,
    root: Value,
    buffer: bytearray,
    iface: ValueInterface | None = None,
    opts: Options | None = None,
) -> int:
    def emit(text: str) -> int:
        data = text.encode('utf-8')
        buffer.extend(data)
        return len(data)

    return lattice(template, root, emit, iface, opts)


def render(
    template: str,
    root: Value,
    iface: ValueInterface | None = None,
    opts: Options | None = None,
) -> str:
    buffer = bytearray()
    lattice_buffer(template, root, buffer, iface, opts)
    return buffer.decode('utf-8')
