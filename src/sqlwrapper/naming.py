"""
Field name to column name converters.

A converter is any callable taking a field name and returning a column name.
The built-ins split words on case boundaries, keeping acronyms together:

    >>> snake('APIResponse')
    'api_response'
    >>> upper_snake('SnakeIDGoogle')
    'SNAKE_ID_GOOGLE'
    >>> camel('JSONObject')
    'jsonObject'
"""
from collections.abc import Callable

__all__ = [
    'NamingConverter',
    'as_is',
    'to_lower',
    'to_upper',
    'snake',
    'upper_snake',
    'camel',
]

NamingConverter = Callable[[str], str]


def _is_upper(c: str) -> bool:
    return 'A' <= c <= 'Z'


def _is_lower(c: str) -> bool:
    return 'a' <= c <= 'z'


def _word_break(s: str, i: int) -> bool:
    """True when a new word starts at position i + 1."""
    return _is_upper(s[i + 1]) and (_is_lower(s[i]) or _is_upper(s[i]) and _is_lower(s[i + 2]))


def _split_case(s: str, transform: Callable[[str], str]) -> str:
    n = len(s)
    if n == 0:
        return ''
    out = []
    for i in range(n - 2):
        out.append(transform(s[i]))
        if _word_break(s, i):
            out.append('_')
    if n >= 2:
        out.append(transform(s[n - 2]))
        if _is_lower(s[n - 2]) and _is_upper(s[n - 1]):
            out.append('_')
    out.append(transform(s[n - 1]))
    return ''.join(out)


def _ascii_lower(c: str) -> str:
    return chr(ord(c) + 32) if _is_upper(c) else c


def _ascii_upper(c: str) -> str:
    return chr(ord(c) - 32) if _is_lower(c) else c


def as_is(name: str) -> str:
    return name


def to_lower(name: str) -> str:
    return name.lower()


def to_upper(name: str) -> str:
    return name.upper()


def snake(name: str) -> str:
    """Convert to lower snake case, the sqlite/mysql/postgresql default.
    """
    return _split_case(name, _ascii_lower)


def upper_snake(name: str) -> str:
    """Convert to upper snake case, the oracle default.
    """
    return _split_case(name, _ascii_upper)


def camel(name: str) -> str:
    """Convert to lower camel case.

    Runs of capitals keep only their first letter capitalized, so acronyms
    with digits (K8S, I18N) may not convert the way you expect.
    """
    n = len(name)
    if n == 0:
        return ''
    out = []
    capital = False
    for i in range(n - 2):
        out.append(_ascii_upper(name[i]) if capital else _ascii_lower(name[i]))
        capital = _word_break(name, i)
    if n >= 2:
        out.append(_ascii_upper(name[n - 2]) if capital else _ascii_lower(name[n - 2]))
        capital = _is_upper(name[n - 1]) and _is_lower(name[n - 2])
    out.append(_ascii_upper(name[n - 1]) if capital else _ascii_lower(name[n - 1]))
    return ''.join(out)
