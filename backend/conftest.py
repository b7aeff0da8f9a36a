"""Shared pytest configuration and fixtures."""

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

pytest_plugins = [
    "bookings.tests.fixtures",
]


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """DRF API client for request/response helpers."""
    return APIClient()
