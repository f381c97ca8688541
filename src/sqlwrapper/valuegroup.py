"""
Parenthesized value lists for `in` predicates.

    db.query_multiple(users, User, where('age in ?', ValueGroup(20, 30)))
    # ... where age in (?, ?)   args: [20, 30]

Groups nest, which gives multi-column `in` (not every database supports it):

    where('(gender, age) in ?', ValueGroup(ValueGroup(1, 20), ValueGroup(0, 30)))
    # ... where (gender, age) in ((?, ?), (?, ?))
"""
from typing import Any

from sqlwrapper.context import ContextAppender, SqlContext

__all__ = ['ValueGroup']


class ValueGroup:
    """Ordered values rendered as `(p1, p2, ...)`.

    An empty group renders `(null)` so `x in ?` matches nothing instead of
    producing invalid SQL.
    """

    __slots__ = ('values',)

    def __init__(self, *values: Any) -> None:
        self.values = values

    def append_to_context(self, ctx: SqlContext) -> None:
        if not self.values:
            ctx.write_string('(null)')
            return
        ctx.write_string('(')
        for i, value in enumerate(self.values):
            if i:
                ctx.write_string(', ')
            if isinstance(value, ContextAppender):
                ctx.append(value)
            else:
                ctx.next_placeholder(value)
        ctx.write_string(')')

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self):
        return iter(self.values)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ValueGroup) and self.values == other.values

    def __hash__(self) -> int:
        return hash(self.values)

    def __repr__(self) -> str:
        return f'ValueGroup{self.values!r}'
