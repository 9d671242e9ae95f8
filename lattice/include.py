import os

from .errors import ErrorKind, LatticeError
from .options import Options
from .template import Directive, lex_template
from .tree import build_tree
from .util import log, shorten


def _include_error(msg: str, d: Directive) -> LatticeError:
    log.debug('Include %s failed: %s', shorten(d.text), msg)
    return LatticeError(ErrorKind.INCLUDE, msg, d.line)


def _load(d: Directive, opts: Options, stack: tuple[str, ...]) -> tuple[str, str]:
    '''Returns the identity and the source text of an include.'''
    path = d.text

    if opts.resolve is not None:
        if path in stack:
            raise _include_error(f"recursive include of '{path}'", d)
        if (source := opts.resolve(path)) is None:
            raise _include_error('failed to resolve include', d)
        return path, source

    for directory in opts.search or ('.',):
        candidate = os.path.join(directory, path)
        if os.path.isfile(candidate):
            break
    else:
        raise _include_error('failed to resolve include', d)

    ident = os.path.realpath(candidate)
    if ident in stack:
        raise _include_error(f"recursive include of '{path}'", d)

    try:
        with open(candidate, encoding='utf-8') as f:
            return ident, f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise _include_error('failed to read include', d) from e


def resolve_includes(body: list[Directive], opts: Options, stack: tuple[str, ...] = ()):
    for d in body:
        if d.kind != 'include':
            resolve_includes(d.body, opts, stack)
            continue

        ident, source = _load(d, opts, stack)
        log.debug('Including %s as %s', d.text, ident)
        try:
            d.body = parse_template(source, opts, stack=(*stack, ident))
        except LatticeError as e:
            if e.file is None:
                e.file = d.text
            raise


def parse_template(
    template: str, opts: Options | None = None, *, stack: tuple[str, ...] = ()
) -> list[Directive]:
    '''
    Runs the whole front end over `template`: lexing, block nesting and
    include resolution. Included templates go through the same steps, with
    their identities on `stack` for cycle detection.
    '''
    if opts is None:
        opts = Options()
    body = build_tree(lex_template(template), template.count('\n') + 1)
    resolve_includes(body, opts, stack)
    return body
