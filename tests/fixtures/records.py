"""
Record types shared by the tests.
"""
import datetime
from dataclasses import dataclass

import pytest
from sqlwrapper import Entity, db_field


@dataclass
class User(Entity):
    __tablename__ = 'users'

    id: int = 0
    name: str = ''
    age: int = 0
    nickname: str | None = None
    created_at: datetime.datetime | None = None


@dataclass
class Tag(Entity):
    """String primary key stored in column `code`."""
    __tablename__ = 'tags'
    __pkcolumn__ = 'code'

    code: str = ''
    label: str = ''


@dataclass
class Account(Entity):
    __tablename__ = 'accounts'

    id: int = 0
    owner: str = db_field('owner_name', default='')
    balance: float = 0.0
    active: bool = False
    notes: list = db_field('-', default_factory=list)


@dataclass
class Event(Entity):
    """No field maps to the primary key column."""
    __tablename__ = 'events'

    name: str = ''
    happened_on: datetime.date | None = None


@dataclass
class Plain:
    """Dataclass without a table name."""
    id: int = 0
    value: str = ''


class NotARecord:
    id = 0


@pytest.fixture
def user():
    return User(name='alice', age=30)
