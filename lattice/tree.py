from .errors import syntax_error
from .template import BLOCKS, Directive

CHAINS = ('if', 'elif')
SUBCLAUSES = ('elif', 'else')


class TreeBuilder:
    '''
    Nests a flat directive list into blocks.

    Each block directive receives its body; `end` directives are consumed.
    An `elif` or `else` closes the body of the `if`/`elif` before it and then
    opens its own, so a chain ends up as adjacent siblings. Inside any other
    block it closes that block too and is handed to the enclosing level,
    until it meets the chain it continues. A `switch` body holds only its
    `case` and `default` clauses.
    '''

    def __init__(self, directives: list[Directive], last_line: int):
        self._items = directives
        self._pos = 0
        self._last_line = last_line

    def build(self) -> list[Directive]:
        body, _ = self._level(None)
        return body

    def _eof(self):
        return syntax_error('unexpected end of file', self._last_line)

    def _level(self, parent: str | None) -> tuple[list[Directive], Directive | None]:
        '''
        Collects directives until the level is closed.

        Returns the body and the directive that closed it: a consumed `end`,
        an unconsumed clause that continues or closes the parent, or `None`
        at the end of input.
        '''
        items = self._items
        body = []

        while self._pos < len(items):
            d = items[self._pos]
            match d.kind:
                case 'end':
                    if parent is None:
                        raise syntax_error('unexpected block terminator', d.line)
                    self._pos += 1
                    return body, d
                case 'elif' | 'else':
                    if parent is None:
                        raise syntax_error('unexpected subclause', d.line)
                    return body, d
                case 'case' | 'default':
                    if parent not in ('case', 'default'):
                        raise syntax_error('case outside of switch', d.line)
                    return body, d
                case 'switch':
                    self._pos += 1
                    body.append(d)
                    if (stop := self._switch(d)) is not None:
                        return self._pass_up(parent, body, stop)
                case kind if kind in BLOCKS:
                    self._pos += 1
                    if (stop := self._chain(d, body)) is not None:
                        return self._pass_up(parent, body, stop)
                case _:
                    self._pos += 1
                    body.append(d)

        return body, None

    def _pass_up(self, parent: str | None, body: list[Directive], stop: Directive):
        # A subclause that closed a nested block also closes this level.
        if parent is None:
            raise syntax_error('unexpected subclause', stop.line)
        return body, stop

    def _chain(self, d: Directive, body: list[Directive]) -> Directive | None:
        '''
        Builds `d` and the clauses chained to it into `body`.

        Returns `None` once an `end` closes the chain, or the pending
        subclause that closed it without belonging to it.
        '''
        while True:
            d.body, stop = self._level(d.kind)
            body.append(d)
            if stop is None:
                raise self._eof()
            if stop.kind == 'end':
                return None
            if d.kind not in CHAINS:
                return stop
            self._pos += 1
            d = stop

    def _switch(self, d: Directive) -> Directive | None:
        items = self._items
        # Text between the header and the first clause is not output.
        while self._pos < len(items) and items[self._pos].kind == 'span':
            self._pos += 1

        seen_default = False
        while self._pos < len(items):
            clause = items[self._pos]
            match clause.kind:
                case 'end':
                    self._pos += 1
                    return None
                case 'case' | 'default':
                    if seen_default:
                        raise syntax_error('cannot have case after default', clause.line)
                    seen_default = clause.kind == 'default'
                    self._pos += 1

                    clause.body, stop = self._level(clause.kind)
                    d.body.append(clause)
                    if stop is None:
                        raise self._eof()
                    if stop.kind == 'end':
                        return None
                    if stop.kind in SUBCLAUSES:
                        return stop
                case _:
                    raise syntax_error('expected case in switch', clause.line)

        raise self._eof()


def build_tree(directives: list[Directive], last_line: int) -> list[Directive]:
    return TreeBuilder(directives, last_line).build()
