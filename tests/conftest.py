# backend/tests/conftest.py
# Shared fixtures: a MagicMock database whose collections are created on first access

from collections import defaultdict
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from bson import ObjectId

from app.config import Settings


@pytest.fixture
def collections():
    return defaultdict(MagicMock)


@pytest.fixture
def db(collections):
    database = MagicMock()
    database.__getitem__.side_effect = lambda name: collections[name]
    return database


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def user_id():
    return ObjectId()


@pytest.fixture
def user_doc(user_id):
    return {
        "_id": user_id,
        "full_name": "Ada Dispatcher",
        "email": "ada@example.com",
        "password": "hashed",
        "role": "user",
        "is_email_verified": True,
        "is_active": True,
        "has_completed_kyc": True,
        "has_completed_vehicle_registration": True,
        "created_at": datetime(2024, 1, 1),
    }


@pytest.fixture
def make_cursor():
    """Mimic a pymongo cursor supporting sort/skip/limit chaining."""

    def cursor(documents):
        result = MagicMock()
        result.sort.return_value = result
        result.skip.return_value = result
        result.limit.return_value = result
        result.__iter__.side_effect = lambda: iter(documents)
        return result

    return cursor
