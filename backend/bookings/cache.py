from __future__ import annotations

from typing import Iterable, Set
from urllib.parse import urlencode

from django.conf import settings
from django.core.cache import cache
from django.http import QueryDict

BOOKINGS_CACHE_VERSION_KEY = "bookings:{scope}:version:{user_id}"
GUEST_SCOPE = "my"
HOTEL_OWNER_SCOPE = "hotel-owner"


def _version_key(scope: str, user_id: int) -> str:
    return BOOKINGS_CACHE_VERSION_KEY.format(scope=scope, user_id=user_id)


def _get_version(scope: str, user_id: int) -> int:
    key = _version_key(scope, user_id)
    version = cache.get(key)
    if version is None:
        cache.add(key, 1, timeout=None)
        return 1
    try:
        return int(version)
    except (TypeError, ValueError):
        return 1


def _bump_version(scope: str, user_id: int) -> None:
    key = _version_key(scope, user_id)
    try:
        cache.incr(key)
    except ValueError:
        cache.set(key, _get_version(scope, user_id) + 1, timeout=None)


def _normalize_query_params(params: QueryDict) -> str:
    items: list[tuple[str, str]] = []
    for key in sorted(params.keys()):
        for value in params.getlist(key):
            items.append((key, value))
    return urlencode(items)


def bookings_cache_key(scope: str, user_id: int, params: QueryDict) -> str:
    normalized = _normalize_query_params(params)
    return (
        f"bookings:{scope}:u{user_id}:v{_get_version(scope, user_id)}:"
        f"{normalized or 'all'}"
    )


def _unique_ids(user_ids: Iterable[int | None]) -> Set[int]:
    return {int(user_id) for user_id in user_ids if user_id}


def invalidate_bookings_cache(
    *,
    guest_ids: Iterable[int | None] = (),
    hotel_owner_ids: Iterable[int | None] = (),
) -> None:
    for user_id in _unique_ids(guest_ids):
        _bump_version(GUEST_SCOPE, user_id)
    for user_id in _unique_ids(hotel_owner_ids):
        _bump_version(HOTEL_OWNER_SCOPE, user_id)


def bookings_cache_timeout() -> int:
    return getattr(settings, "CACHE_TTL_MY_BOOKINGS", 120)
