"""
Unit tests for the statements record operations render and execute.

A fake DB-API connection records each statement, so these tests pin the
exact SQL per dialect without a database.
"""
import logging
from dataclasses import dataclass

import pytest
from sqlwrapper import Entity
from sqlwrapper.clauses import including_zeros, limit, order_by, where, with_columns
from sqlwrapper.crud import ExecResult, Operations
from sqlwrapper.dialect import DEFAULT_DIALECT
from sqlwrapper.exceptions import CancelledError, ElemNotSliceError, ElemNotStructError
from sqlwrapper.exceptions import EmptyPrimaryKeyError, NoPrimaryKeyError, NotEntityError
from sqlwrapper.exceptions import NotPointerError, NotSupportedError, UnknownColumnError
from sqlwrapper.scope import Scope
from sqlwrapper.valuegroup import ValueGroup

from tests.fixtures.mocks import FakeCursor, FakeResult
from tests.fixtures.records import Event, NotARecord, Plain, Tag, User

PG_SELECT = 'select "id", "name", "age", "nickname", "created_at" from "users"'


class TestInsert:
    """Tests for insert rendering and generated key recovery"""

    def test_postgres_returning(self, fake_db, user):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id'], rows=[(7,)]))
        assert db.insert(user) == 1
        assert raw.executed == [
            ('insert into "users" ("name", "age") values ($1, $2) returning "id"', ['alice', 30])]
        assert user.id == 7

    def test_postgres_explicit_key(self, fake_db):
        db, raw = fake_db('postgresql')
        user = User(id=3, name='bob')
        assert db.insert(user) == 1
        assert raw.executed == [('insert into "users" ("id", "name") values ($1, $2)', [3, 'bob'])]
        assert user.id == 3

    def test_postgres_no_columns(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id'], rows=[(1,)]))
        db.insert(User())
        assert raw.executed[0][0] == 'insert into "users" default values returning "id"'

    def test_including_zeros(self, fake_db):
        db, raw = fake_db('postgresql')
        db.insert(User(id=4), including_zeros())
        sql, args = raw.executed[0]
        assert sql == ('insert into "users" ("id", "name", "age", "nickname", "created_at") '
                       'values ($1, $2, $3, $4, $5)')
        assert args == [4, '', 0, None, None]

    def test_with_columns(self, fake_db):
        db, raw = fake_db('postgresql')
        db.insert(User(id=4, name='x', age=9), with_columns('id', 'age'))
        assert raw.executed[0] == ('insert into "users" ("id", "age") values ($1, $2)', [4, 9])

    def test_unknown_column(self, fake_db):
        db, raw = fake_db('postgresql')
        with pytest.raises(UnknownColumnError, match="column 'bogus'"):
            db.insert(User(id=1), with_columns('bogus'))
        assert raw.executed == []

    def test_sqlserver_scope_identity(self, fake_db, user):
        db, raw = fake_db('sqlserver')
        raw.results.append(FakeResult(columns=['last_id'], rows=[(9,)], leading_counts=1))
        assert db.insert(user) == 1
        assert raw.executed == [
            ('insert into [users] ([name], [age]) values (?, ?); '
             'select last_id = convert(bigint, SCOPE_IDENTITY())', ['alice', 30])]
        assert user.id == 9

    def test_sqlserver_string_key_not_recovered(self, fake_db, caplog):
        db, raw = fake_db('sqlserver')
        tag = Tag(label='red')
        with caplog.at_level(logging.WARNING):
            assert db.insert(tag) == 1
        assert raw.executed == [('insert into [tags] ([label]) values (?)', ['red'])]
        assert tag.code == ''
        assert 'String key of Tag cannot be recovered' in caplog.text

    def test_oracle_rowid_not_assigned(self, fake_db, caplog):
        @dataclass
        class Label(Entity):
            __tablename__ = 'LABELS'
            __pkcolumn__ = 'CODE'
            code: str = ''
            text: str = ''

        db, raw = fake_db('oracle')
        raw.results.append(FakeResult(lastrowid='AAAR3sAAEAAAACXAAA'))
        label = Label(text='red')
        with caplog.at_level(logging.WARNING):
            assert db.insert(label) == 1
        assert raw.executed == [('insert into "LABELS" ("TEXT") values (:1)', ['red'])]
        assert label.code == ''
        assert 'Generated key of Label cannot be recovered on Oracle' in caplog.text

    def test_mysql_last_insert_id(self, fake_db, user):
        db, raw = fake_db('mysql')
        raw.results.append(FakeResult(lastrowid=11))
        db.insert(user)
        assert raw.executed == [('insert into `users` (`name`, `age`) values (%s, %s)', ['alice', 30])]
        assert user.id == 11

    def test_mysql_no_columns(self, fake_db):
        db, raw = fake_db('mysql')
        raw.results.append(FakeResult(lastrowid=1))
        db.insert(User())
        assert raw.executed[0][0] == 'insert into `users` () values ()'

    def test_default_dialect_without_key_support(self, fake_db, user, caplog):
        db, raw = fake_db('odbc', dialect=DEFAULT_DIALECT)
        with caplog.at_level(logging.WARNING):
            assert db.insert(user) == 1
        assert raw.executed == [('insert into users (name, age) values (?, ?)', ['alice', 30])]
        assert user.id == 0
        assert 'Generated key not recovered' in caplog.text

    def test_unconvertible_key_is_not_assigned(self, fake_db, user, caplog):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id'], rows=[('abc',)]))
        with caplog.at_level(logging.WARNING):
            assert db.insert(user) == 1
        assert user.id == 0
        assert 'not assigned' in caplog.text

    def test_record_without_key_field(self, fake_db):
        db, raw = fake_db('postgresql')
        db.insert(Event(name='launch'))
        assert raw.executed == [('insert into "events" ("name") values ($1)', ['launch'])]

    def test_record_without_table(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(NotEntityError):
            db.insert(Plain(id=1))


class TestUpdate:
    """Tests for update rendering"""

    def test_non_zero_fields(self, fake_db):
        db, raw = fake_db('postgresql')
        assert db.update(User(id=5, name='bob')) == 1
        assert raw.executed == [('update "users" set "name" = $1 where "id" = $2', ['bob', 5])]

    def test_including_zeros(self, fake_db):
        db, raw = fake_db('postgresql')
        db.update(User(id=5, name='bob'), including_zeros())
        assert raw.executed == [(
            'update "users" set "name" = $1, "age" = $2, "nickname" = $3, "created_at" = $4 '
            'where "id" = $5', ['bob', 0, None, None, 5])]

    def test_with_columns(self, fake_db):
        db, raw = fake_db('sqlserver')
        db.update(User(id=5, name='bob', age=40), with_columns('age'))
        assert raw.executed == [('update [users] set [age] = ? where [id] = ?', [40, 5])]

    def test_key_column_is_never_set(self, fake_db):
        db, raw = fake_db('postgresql')
        db.update(User(id=5, age=1), with_columns('id', 'age'))
        assert raw.executed == [('update "users" set "age" = $1 where "id" = $2', [1, 5])]

    def test_nothing_to_update(self, fake_db):
        db, raw = fake_db('postgresql')
        assert db.update(User(id=5)) == 0
        assert raw.executed == []

    def test_zero_key(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(EmptyPrimaryKeyError, match="primary key field 'id'"):
            db.update(User(name='bob'))

    def test_no_key_field(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(NoPrimaryKeyError):
            db.update(Event(name='launch'))

    def test_rowcount(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(rowcount=0))
        assert db.update(User(id=99, name='ghost')) == 0


class TestSave:
    """Tests for insert-or-update dispatch"""

    def test_zero_key_inserts(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id'], rows=[(12,)]))
        user = User(name='new')
        db.save(user)
        assert raw.executed[0][0].startswith('insert into "users"')
        assert user.id == 12

    def test_key_updates(self, fake_db):
        db, raw = fake_db('postgresql')
        db.save(User(id=12, name='old'))
        assert raw.executed[0][0].startswith('update "users"')

    def test_no_key_field(self, fake_db):
        db, raw = fake_db('postgresql')
        with pytest.raises(NoPrimaryKeyError):
            db.save(Event(name='launch'))
        assert raw.executed == []


class TestQuery:
    """Tests for single and multiple record queries"""

    def test_single(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id', 'name', 'age', 'nickname', 'created_at'],
                                      rows=[(1, 'alice', 30, None, None)]))
        user = User()
        assert db.query(user, where('id = ?', 1)) is True
        assert raw.executed == [(f'{PG_SELECT} where id = $1 limit $2', [1, 1])]
        assert (user.id, user.name, user.age) == (1, 'alice', 30)

    def test_single_not_found(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id']))
        user = User(name='untouched')
        assert db.query(user, where('id = ?', 404)) is False
        assert user.name == 'untouched'

    def test_multiple(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(columns=['id', 'name'], rows=[(1, 'a'), (2, 'b')]))
        dest = []
        result = db.query_multiple(dest, User, where('age in ?', ValueGroup(20, 30)),
                                   order_by('id desc'), limit(2))
        assert result is dest
        assert [u.name for u in dest] == ['a', 'b']
        assert raw.executed == [(f'{PG_SELECT} where age in ($1, $2) order by "id" desc limit $3',
                                 [20, 30, 2])]

    def test_multiple_mysql_paramstyle(self, fake_db):
        db, raw = fake_db('mysql')
        db.query_multiple([], User, where("name like '%a' and age > ?", 1))
        assert raw.executed[0][0] == ('select `id`, `name`, `age`, `nickname`, `created_at` '
                                      "from `users` where name like '%%a' and age > %s")

    @pytest.mark.parametrize('record', [None, User], ids=['none', 'type'])
    def test_single_needs_instance(self, fake_db, record):
        db, _ = fake_db('postgresql')
        with pytest.raises(NotPointerError):
            db.query(record)

    def test_single_needs_dataclass(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(ElemNotStructError):
            db.query(NotARecord())

    def test_single_needs_table(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(NotEntityError):
            db.query(Plain())

    def test_single_rejects_limit(self, fake_db):
        db, raw = fake_db('postgresql')
        with pytest.raises(TypeError):
            db.query(User(), limit(5))
        assert raw.executed == []

    @pytest.mark.parametrize(('dest', 'record_type', 'error'), [
        ((), User, ElemNotSliceError),
        ({}, User, ElemNotSliceError),
        ([], User(), NotPointerError),
        ([], NotARecord, ElemNotStructError),
    ], ids=['tuple', 'dict', 'instance', 'not_dataclass'])
    def test_multiple_shape_errors(self, fake_db, dest, record_type, error):
        db, _ = fake_db('postgresql')
        with pytest.raises(error):
            db.query_multiple(dest, record_type)


class TestDelete:
    """Tests for delete rendering"""

    def test_where(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(rowcount=3))
        assert db.delete(User, where('age < ?', 18)) == 3
        assert raw.executed == [('delete from "users" where age < $1', [18])]

    def test_table_name(self, fake_db):
        db, raw = fake_db('sqlserver')
        db.delete('sessions')
        assert raw.executed == [('delete from [sessions]', [])]

    def test_record_instance(self, fake_db):
        db, raw = fake_db('postgresql')
        db.delete(User(id=1), where('id = ?', 1))
        assert raw.executed[0][0] == 'delete from "users" where id = $1'

    def test_rejects_query_options(self, fake_db):
        db, _ = fake_db('postgresql')
        with pytest.raises(TypeError):
            db.delete(User, order_by('id'))


class TestExecution:
    """Tests for raw execution, logging and cancellation"""

    def test_raw_exec(self, fake_db):
        db, raw = fake_db('postgresql')
        raw.results.append(FakeResult(rowcount=2, lastrowid=None))
        result = db.raw_exec('update t set a = $1', 1)
        assert isinstance(result, ExecResult)
        assert result.rowcount == 2
        with pytest.raises(NotSupportedError):
            result.last_insert_id()
        assert db.calls == 1

    def test_driver_error_propagates(self, fake_db, caplog):
        db, raw = fake_db('postgresql')
        raw.results.append(RuntimeError('syntax error at or near "form"'))
        with caplog.at_level(logging.ERROR), pytest.raises(RuntimeError, match='syntax error'):
            db.raw_exec('select * form t')
        assert 'Error with query' in caplog.text

    def test_cancelled_scope_skips_statement(self, fake_db):
        db, raw = fake_db('postgresql')
        scope = Scope()
        scope.cancel()
        with pytest.raises(CancelledError):
            db.query_multiple([], User, scope=scope)
        assert raw.executed == []

    def test_cancel_during_statement(self, fake_db, mocker):
        db, raw = fake_db('postgresql')
        scope = Scope()
        cursor = FakeCursor(raw)

        def execute(sql, params=None):
            scope.cancel()
            raise RuntimeError('canceling statement due to user request')

        cursor.execute = execute
        mocker.patch.object(raw, 'cursor', return_value=cursor)
        with pytest.raises(CancelledError):
            db.raw_exec('select pg_sleep(10)', scope=scope)
        assert raw.cancelled == 1
        assert cursor.closed

    def test_close_cancels_database_scope(self, fake_db):
        db, _ = fake_db('postgresql')
        db.close()
        assert db.scope.cancelled
        assert db.sa_connection.closed

    def test_operations_requires_execution(self):
        with pytest.raises(TypeError):
            Operations()


if __name__ == '__main__':
    __import__('pytest').main([__file__])
