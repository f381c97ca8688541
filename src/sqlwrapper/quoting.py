"""
Identifier quoting.

Each dot-separated segment of a qualified name is wrapped on its own so
`schema.table` becomes `"schema"."table"`. Segments that are already wrapped
and the `*` wildcard are left alone, which makes quoting idempotent.
"""
from dataclasses import dataclass

__all__ = [
    'Quoter',
    'NO_QUOTES',
    'DOUBLE_QUOTES',
    'SINGLE_QUOTES',
    'BRACKETS',
    'BACKTICKS',
]


@dataclass(frozen=True, slots=True)
class Quoter:
    """Wraps identifier segments in a prefix and suffix.
    """
    prefix: str = ''
    suffix: str = ''

    def __call__(self, identifier: str) -> str:
        return self.quote(identifier)

    def quote(self, identifier: str) -> str:
        if not self.prefix and not self.suffix:
            return identifier
        return '.'.join(self._quote_segment(s) for s in identifier.split('.'))

    def _quote_segment(self, segment: str) -> str:
        if segment == '*' or self.is_quoted(segment):
            return segment
        if self.suffix:
            segment = segment.replace(self.suffix, self.suffix * 2)
        return f'{self.prefix}{segment}{self.suffix}'

    def is_quoted(self, segment: str) -> bool:
        """Check whether a single segment is already wrapped."""
        return (len(segment) >= len(self.prefix) + len(self.suffix) + 1
                and segment.startswith(self.prefix)
                and segment.endswith(self.suffix))


NO_QUOTES = Quoter()
# postgresql, oracle
DOUBLE_QUOTES = Quoter('"', '"')
SINGLE_QUOTES = Quoter("'", "'")
# sqlserver
BRACKETS = Quoter('[', ']')
# mysql, sqlite
BACKTICKS = Quoter('`', '`')
