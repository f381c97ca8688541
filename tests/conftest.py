import pathlib
import site

import pytest
from sqlwrapper.meta import MetadataCache

HERE = pathlib.Path(pathlib.Path(__file__).resolve()).parent
site.addsitedir(HERE)


@pytest.fixture(autouse=True)
def clear_caches():
    """Clear the record metadata cache before and after each test to ensure test isolation."""
    MetadataCache.get_instance().clear()
    yield
    MetadataCache.get_instance().clear()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.records',
    'tests.fixtures.sqlite',
]
