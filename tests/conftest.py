import itertools
from datetime import datetime, timedelta, timezone

import pytest

from smartmark import create_app
from smartmark.config import TestConfig
from smartmark.extensions import db
from smartmark.services.errors import StoreError


class DevConfig(TestConfig):
    DEV_MODE = True


class FakeBookmarkTable:
    """In-memory stand-in for the persistence collaborator."""

    def __init__(self, rows=None):
        self.rows = [dict(row) for row in (rows or [])]
        self.calls = []
        self.fail = set()
        self._ids = itertools.count(100)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise StoreError(name, f"{name} rejected")

    def select(self, owner_id):
        self._check("select")
        rows = [row for row in self.rows if row["user_id"] == owner_id]
        return sorted(rows, key=lambda row: row["created_at"] or "", reverse=True)

    def insert(self, values):
        self._check("insert")
        self._clock += timedelta(minutes=1)
        row = dict(values, id=next(self._ids), is_favorite=False)
        row["created_at"] = self._clock.isoformat()
        self.rows.append(row)
        return dict(row)

    def update(self, row_id, values):
        self._check("update")
        matched = []
        for row in self.rows:
            if str(row["id"]) == str(row_id):
                row.update(values)
                matched.append(dict(row))
        return matched

    def delete(self, row_id):
        self._check("delete")
        self.rows = [row for row in self.rows if str(row["id"]) != str(row_id)]


@pytest.fixture
def fake_table():
    return FakeBookmarkTable()


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def dev_app():
    app = create_app(DevConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app


@pytest.fixture
def dev_client(dev_app):
    return dev_app.test_client()
