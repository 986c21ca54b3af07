import pytest
from _pytest.fixtures import SubRequest
from sqlalchemy.engine import Engine, create_engine


@pytest.fixture()
def engine(request: SubRequest) -> Engine:
    connection_url = request.config.getoption("--sqlalchemy-postgres-url")
    if not connection_url:
        pytest.skip("Define --sqlalchemy-postgres-url cmd line option to run against PostgreSQL")
    return create_engine(connection_url)
