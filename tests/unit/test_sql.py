"""Unit tests for placeholder translation to driver paramstyles.

Tests the public API:
- tokenize_sql(sql) - split SQL into text, literals and placeholders
- to_format_paramstyle(sql) - placeholders to %s, escaping %
- to_qmark_paramstyle(sql) - placeholders to ?
- count_placeholders(sql) - placeholders outside literals
"""
import pytest
from sqlwrapper.sql import TokenType, count_placeholders, to_format_paramstyle
from sqlwrapper.sql import to_qmark_paramstyle, tokenize_sql


class TestFormatParamstyle:

    @pytest.mark.parametrize(('sql', 'expected'), [
        ('select * from t where a = ? and b = ?',
         'select * from t where a = %s and b = %s'),
        ("select * from t where name like 'a%' and id = ?",
         "select * from t where name like 'a%%' and id = %s"),
        ("select '?' from t where id = ?",
         "select '?' from t where id = %s"),
        ('select id % 2 from t',
         'select id %% 2 from t'),
        ('select 1',
         'select 1'),
    ], ids=['qmarks', 'percent_in_literal', 'qmark_in_literal', 'modulo', 'no_placeholders'])
    def test_convert(self, sql, expected):
        assert to_format_paramstyle(sql) == expected


class TestQmarkParamstyle:

    @pytest.mark.parametrize(('sql', 'expected'), [
        ('select * from t where a = @p1 and b = @p2',
         'select * from t where a = ? and b = ?'),
        ('update t set a = $1 where id = $2',
         'update t set a = ? where id = ?'),
        ('select * from t where a = :1',
         'select * from t where a = ?'),
        ("select '@p1' from t where a = @p1",
         "select '@p1' from t where a = ?"),
        ("select cast(x as text)::int from t where a = ?",
         "select cast(x as text)::int from t where a = ?"),
    ], ids=['at_p', 'dollar', 'colon', 'literal_kept', 'postgres_cast_kept'])
    def test_convert(self, sql, expected):
        assert to_qmark_paramstyle(sql) == expected


def test_tokenize_preserves_text():
    sql = "insert into t (a, b) values ('it''s', ?)"
    tokens = tokenize_sql(sql)
    assert ''.join(t.text for t in tokens) == sql
    assert [t.type for t in tokens if t.type != TokenType.SQL_TEXT] == [
        TokenType.STRING_LITERAL, TokenType.PLACEHOLDER]


def test_count_placeholders():
    assert count_placeholders("select ? , '?' , $1, @p2") == 3
    assert count_placeholders('select 1') == 0
