"""
Fixtures for SQLite-specific integration tests.
"""
import os
import tempfile

import pytest
import sqlwrapper as sw

from tests.fixtures.sqlite import SCHEMA


@pytest.fixture
def sqlite_file_db():
    """File-based SQLite database with the test schema, for tests needing a second connection."""
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)

    db = sw.connect({
        'drivername': 'sqlite',
        'database': path
    })
    for statement in SCHEMA:
        db.raw_exec(statement)

    yield db, path

    db.close()
    os.unlink(path)


@pytest.fixture
def seeded_db(sqlite_db):
    """In-memory database with three users and their orders."""
    sqlite_db.raw_exec("insert into users (name, age, nickname) values ('alice', 30, 'al'), "
                       "('bob', 25, null), ('carol', 41, 'cc')")
    sqlite_db.raw_exec('insert into orders (user_id, amount) values (1, 20.0), (1, 75.5), '
                       '(2, 120.0), (3, 5.0)')
    return sqlite_db
