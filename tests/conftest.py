"""Pytest configuration and shared fixtures."""
import pytest

import typedstore.types as types_module
from typedstore import clear_tables, reset_config

from models import User, clock


@pytest.fixture(autouse=True)
def reset_store_state():
    """Reset config, tables, type registry and the test clock around each test."""
    original_registry = dict(types_module._type_registry)
    reset_config()
    clear_tables()
    clock.reset()

    yield

    types_module._type_registry.clear()
    types_module._type_registry.update(original_registry)
    reset_config()
    clear_tables()
    clock.reset()


@pytest.fixture
def user():
    """A persisted user with empty containers."""
    return User.create()
