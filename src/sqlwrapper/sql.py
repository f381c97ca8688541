"""
SQL placeholder processing.

Statements are rendered with the dialect's own placeholders (`?`, `$1`,
`:1`, `@p1`). Some DB-API drivers use a different paramstyle: pymysql wants
`%s` and pyodbc wants `?`. The helpers here translate rendered SQL in a
single tokenizing pass that leaves string literals alone.

Main entry points:
- `tokenize_sql()` - split SQL into text, literals and placeholders
- `to_format_paramstyle()` - any placeholder to `%s`, escaping `%`
- `to_qmark_paramstyle()` - any placeholder to `?`
- `count_placeholders()` - number of placeholders outside literals
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

__all__ = [
    'TokenType',
    'Token',
    'tokenize_sql',
    'to_format_paramstyle',
    'to_qmark_paramstyle',
    'count_placeholders',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    PLACEHOLDER = auto()
    PERCENT = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int


# Master tokenization pattern: literals first so markers inside them are skipped
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<placeholder>@p\d+|\$\d+|(?<![:\w]):\d+|\?)
    |(?P<percent>%)
""", re.VERBOSE)


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0
    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))
        if match.group('string'):
            token_type = TokenType.STRING_LITERAL
        elif match.group('placeholder'):
            token_type = TokenType.PLACEHOLDER
        else:
            token_type = TokenType.PERCENT
        tokens.append(Token(token_type, match.group(), start, end))
        last_end = end
    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))
    return tokens


def to_format_paramstyle(sql: str) -> str:
    """Convert placeholders to `%s` and escape every other `%` as `%%`.

    pymysql interpolates with the `%` operator, so percent signs inside
    string literals need escaping too.
    """
    out = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.PLACEHOLDER:
            out.append('%s')
        else:
            out.append(token.text.replace('%', '%%'))
    return ''.join(out)


def to_qmark_paramstyle(sql: str) -> str:
    """Convert numbered placeholders (`$1`, `:1`, `@p1`) to `?`."""
    return ''.join('?' if t.type == TokenType.PLACEHOLDER else t.text
                   for t in tokenize_sql(sql))


def count_placeholders(sql: str) -> int:
    """Count placeholders outside string literals."""
    return sum(1 for t in tokenize_sql(sql) if t.type == TokenType.PLACEHOLDER)
