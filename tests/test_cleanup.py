from __future__ import annotations

import pytest

from conftest import FakeTokenStore
from taskpush.notifications import CleanupExecutor, InvalidTokenRecord

pytestmark = pytest.mark.asyncio


async def test_cleanup_removes_each_distinct_token_once() -> None:
    store = FakeTokenStore({1: ["dead", "live"], 2: ["dead"]})
    records = [
        InvalidTokenRecord(token="dead", reason="UNREGISTERED", user_id=1),
        InvalidTokenRecord(token="dead", reason="UNREGISTERED", user_id=2),
    ]

    report = await CleanupExecutor(store).cleanup(records)

    assert store.removed == ["dead"]
    assert report.removed == ["dead"]
    assert report.failed == []
    assert store.tokens == {1: ["live"], 2: []}


async def test_cleanup_continues_after_a_storage_failure() -> None:
    store = FakeTokenStore({1: ["first", "second", "third"]})
    store.fail_removal = {"second"}
    records = [InvalidTokenRecord(token=value, reason="UNREGISTERED") for value in ("first", "second", "third")]

    report = await CleanupExecutor(store).cleanup(records)

    assert store.removed == ["first", "second", "third"]
    assert report.removed == ["first", "third"]
    assert [failure.token for failure in report.failed] == ["second"]
    assert report.removed_count == 2
    assert report.failed_count == 1
    assert store.tokens == {1: ["second"]}


async def test_cleanup_with_nothing_to_do() -> None:
    store = FakeTokenStore({1: ["tok"]})

    report = await CleanupExecutor(store).cleanup([])

    assert report.removed == [] and report.failed == []
    assert store.removed == []
