try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
from typing import Any

import pytest

from backlog_bff.clients.backlog_activity import ActivityFetchError
from backlog_bff.clients.backlog_auth import UnknownUserError
from backlog_bff.clients.memory_store import InMemoryFavoriteStore, InMemoryTokenStore
from backlog_bff.models.activity import ActivityItem, ActivityUser
from backlog_bff.models.oauth import AuthToken
from backlog_bff.services.activity_feed import ActivityFeedService
from backlog_bff.services.favorites import AlreadyFavoriteError, FavoritesService
from backlog_bff.services.token_lifecycle import TokenLifecycleService


def _item(item_id: str, summary: str, fixed_now: datetime) -> ActivityItem:
    return ActivityItem(
        id=item_id,
        project_id="1",
        project_name="Website",
        type="Issue Updated",
        content_summary=summary,
        created_user=ActivityUser(id="7", name="Taro Yamada"),
        created=fixed_now,
    )


class StubActivityClient:
    def __init__(self, items: list[ActivityItem]) -> None:
        self.items = items
        self.calls = 0

    async def search_activities(
        self, access_token: str, keyword: str, limit: int
    ) -> list[ActivityItem]:
        self.calls += 1
        return [item for item in self.items if item.matches(keyword)]


class UnavailableActivityClient:
    async def search_activities(
        self, access_token: str, keyword: str, limit: int
    ) -> list[ActivityItem]:
        raise ActivityFetchError("Activity request failed: upstream down")


class StaleExistsFavoriteStore(InMemoryFavoriteStore):
    """Reports every pair as absent, as a lagging index would."""

    def exists(self, user_id: str, item_id: str) -> bool:
        return False


class SlowFavoriteStore(InMemoryFavoriteStore):
    """Widens the gap between the existence check and the insert."""

    def exists(self, user_id: str, item_id: str) -> bool:
        found = super().exists(user_id, item_id)
        time.sleep(0.01)
        return found


class NoRefreshOAuthClient:
    async def refresh_token(self, refresh_token: str) -> AuthToken:  # pragma: no cover
        raise AssertionError("tokens in these tests never expire")


def _build(
    fixed_now: datetime,
    *,
    favorite_store: InMemoryFavoriteStore | None = None,
    activity_client: StubActivityClient | UnavailableActivityClient | None = None,
) -> tuple[FavoritesService, Any, InMemoryFavoriteStore]:
    token_store = InMemoryTokenStore()
    token_store.save(
        AuthToken(
            access_token="access-1",
            refresh_token="refresh-1",
            expires_at=fixed_now + timedelta(hours=1),
            user_id="42",
        )
    )
    activity_client = activity_client or StubActivityClient(
        [
            _item("7", "Fix login redirect", fixed_now),
            _item("8", "Update footer", fixed_now),
            _item("9", "Login copy tweaks", fixed_now),
        ]
    )
    favorite_store = favorite_store or InMemoryFavoriteStore()
    service = FavoritesService(
        token_service=TokenLifecycleService(
            oauth_client=NoRefreshOAuthClient(),  # type: ignore[arg-type]
            token_store=token_store,
            clock=lambda: fixed_now,
        ),
        activity_feed=ActivityFeedService(
            activity_client=activity_client,  # type: ignore[arg-type]
            clock=lambda: fixed_now,
        ),
        favorite_store=favorite_store,
        clock=lambda: fixed_now,
    )
    return service, activity_client, favorite_store


@pytest.mark.anyio
async def test_search_items_flags_favorites_in_upstream_order(fixed_now: datetime) -> None:
    service, _, _ = _build(fixed_now)
    await service.add_favorite("42", "9")

    items = await service.search_items("42")

    assert [(item.id, item.is_favorite) for item in items] == [
        ("7", False),
        ("8", False),
        ("9", True),
    ]


@pytest.mark.anyio
async def test_search_items_applies_keyword(fixed_now: datetime) -> None:
    service, _, _ = _build(fixed_now)

    items = await service.search_items("42", "login")

    assert [item.id for item in items] == ["7"]


@pytest.mark.anyio
async def test_get_favorites_without_favorites_skips_feed(fixed_now: datetime) -> None:
    service, activity_client, _ = _build(fixed_now)

    assert await service.get_favorites("42") == []
    assert activity_client.calls == 0


@pytest.mark.anyio
async def test_favorite_round_trip(fixed_now: datetime) -> None:
    service, _, store = _build(fixed_now)

    favorite = await service.add_favorite("42", "7")
    assert favorite.user_id == "42"
    assert favorite.item_id == "7"
    assert favorite.created_at == fixed_now

    favorites = await service.get_favorites("42")
    assert [(item.id, item.is_favorite) for item in favorites] == [("7", True)]

    await service.remove_favorite("42", "7")
    assert await service.get_favorites("42") == []
    assert store.find_by_user("42") == []


@pytest.mark.anyio
async def test_favorites_missing_from_feed_are_omitted(fixed_now: datetime) -> None:
    service, _, store = _build(fixed_now)
    await service.add_favorite("42", "7")
    await service.add_favorite("42", "gone")

    favorites = await service.get_favorites("42")

    assert [item.id for item in favorites] == ["7"]
    assert len(store.find_by_user("42")) == 2


@pytest.mark.anyio
async def test_add_favorite_twice_is_rejected(fixed_now: datetime) -> None:
    service, _, store = _build(fixed_now)
    await service.add_favorite("42", "7")

    with pytest.raises(AlreadyFavoriteError):
        await service.add_favorite("42", "7")

    assert len(store.find_by_user("42")) == 1


@pytest.mark.anyio
async def test_duplicate_rejected_by_store_surfaces_as_already_favorite(
    fixed_now: datetime,
) -> None:
    service, _, store = _build(fixed_now, favorite_store=StaleExistsFavoriteStore())
    await service.add_favorite("42", "7")

    with pytest.raises(AlreadyFavoriteError):
        await service.add_favorite("42", "7")

    assert len(store.find_by_user("42")) == 1


@pytest.mark.anyio
async def test_search_during_feed_outage_returns_whole_sample_feed(fixed_now: datetime) -> None:
    service, _, _ = _build(fixed_now, activity_client=UnavailableActivityClient())
    await service.add_favorite("42", "3")

    items = await service.search_items("42", "nomatch")

    assert [(item.id, item.is_favorite) for item in items] == [
        ("1", False),
        ("2", False),
        ("3", True),
        ("4", False),
        ("5", False),
    ]


@pytest.mark.anyio
async def test_remove_favorite_is_idempotent(fixed_now: datetime) -> None:
    service, _, _ = _build(fixed_now)

    await service.remove_favorite("42", "never-added")
    await service.add_favorite("42", "8")
    await service.remove_favorite("42", "8")
    await service.remove_favorite("42", "8")

    assert await service.get_favorites("42") == []


@pytest.mark.anyio
async def test_unknown_user_cannot_touch_favorites(fixed_now: datetime) -> None:
    service, activity_client, store = _build(fixed_now)

    with pytest.raises(UnknownUserError):
        await service.add_favorite("nobody", "7")
    with pytest.raises(UnknownUserError):
        await service.search_items("nobody")
    with pytest.raises(UnknownUserError):
        await service.get_favorites("nobody")

    assert store.find_by_user("nobody") == []
    assert activity_client.calls == 0


def test_concurrent_adds_store_a_single_favorite(fixed_now: datetime) -> None:
    service, _, store = _build(fixed_now, favorite_store=SlowFavoriteStore())
    attempts = 8

    def add() -> str:
        try:
            asyncio.run(service.add_favorite("42", "7"))
        except AlreadyFavoriteError:
            return "duplicate"
        return "added"

    with ThreadPoolExecutor(max_workers=attempts) as pool:
        outcomes = list(pool.map(lambda _: add(), range(attempts)))

    assert outcomes.count("added") == 1
    assert outcomes.count("duplicate") == attempts - 1
    assert [fav.item_id for fav in store.find_by_user("42")] == ["7"]


@pytest.mark.anyio
async def test_user_locks_stay_bounded_across_many_users(fixed_now: datetime) -> None:
    service, _, _ = _build(fixed_now)
    lock_count = len(service._user_locks)

    await service.add_favorite("42", "7")
    locks = {id(service._lock_for(f"user-{index}")) for index in range(10_000)}

    assert len(service._user_locks) == lock_count
    assert len(locks) <= lock_count
    assert service._lock_for("42") is service._lock_for("42")
