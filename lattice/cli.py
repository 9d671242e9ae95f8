import sys
import argparse
from typing import IO, Sequence

from . import __version__, lattice_file
from .errors import ErrorKind, LatticeError
from .util import log
from .value import PythonValues

EPILOG = f'''\
Multiple templates are concatenated.

Exit status:
  0    completed successfully
  1    argument error
  2    IO error
  3    JSON parsing error
  4    templating error

Lattice version {__version__}
'''


class _Parser(argparse.ArgumentParser):
    # Argument errors exit with 1, not argparse's 2, which means IO error here.
    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(
            1,
            f"{self.prog}: error: {message}\n"
            f"Try '{self.prog} --help' for more information.\n",
        )


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog='lattice',
        description='Format TEMPLATES using JSON parsed from stdin.',
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('templates', nargs='+', metavar='TEMPLATES')
    parser.add_argument(
        '--version', action='version', version=f'Lattice version {__version__}'
    )
    return parser


def main(
    argv: Sequence[str] | None = None,
    stdin: IO[str] | None = None,
    stdout: IO[str] | None = None,
    stderr: IO[str] | None = None,
) -> int:
    args = _build_parser().parse_args(argv)
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    iface = PythonValues()
    try:
        text = stdin.read()
    except (OSError, UnicodeDecodeError) as e:
        print(f'Error: failed to read stdin: {e}', file=stderr)
        return 2

    try:
        root = iface.parse(text)
    except LatticeError as e:
        log.debug('Bad input: %s', e)
        print(f'Error: {e.message}', file=stderr)
        return 3

    for path in args.templates:
        try:
            with open(path, encoding='utf-8') as f:
                src = f.read()
        except (OSError, UnicodeDecodeError) as e:
            print(f"Error: failed to read '{path}': {e}", file=stderr)
            return 2

        try:
            lattice_file(src, root, stdout, iface)
        except LatticeError as e:
            if e.file is None:
                e.file = path
            print(e, file=stderr)
            return 2 if e.kind is ErrorKind.IO else 4

    stdout.flush()
    return 0


if __name__ == '__main__':
    sys.exit(main())
