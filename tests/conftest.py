import pytest

from main import app
from models import Column


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c


@pytest.fixture
def base_cols():
    return [Column("timestamp", "datetime"), Column("message"), Column("customDimensions", "dynamic")]


@pytest.fixture
def make_row():
    def _row(dims, ts="2025-01-01T00:00:00Z", msg="m"):
        return [ts, msg, dims]
    return _row
