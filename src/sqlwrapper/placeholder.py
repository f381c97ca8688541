"""
Bind placeholder renderers.

A renderer maps a 1-based argument index to the placeholder text for one
driver family. Renderers are pure: the SQL context supplies the index.
"""
from collections.abc import Callable

__all__ = [
    'Placeholder',
    'question_mark',
    'dollar',
    'colon',
    'at_p',
]

Placeholder = Callable[[int], str]


def _check_index(index: int) -> None:
    if index < 1:
        raise ValueError(f'placeholder index must be >= 1, got {index}')


def question_mark(index: int) -> str:
    """`?` for mysql and sqlite."""
    _check_index(index)
    return '?'


def dollar(index: int) -> str:
    """`$1, $2` for postgresql."""
    _check_index(index)
    return f'${index}'


def colon(index: int) -> str:
    """`:1, :2` for oracle."""
    _check_index(index)
    return f':{index}'


def at_p(index: int) -> str:
    """`@p1, @p2` for sqlserver."""
    _check_index(index)
    return f'@p{index}'
