"""Unit tests for transaction_scope and post-commit actions."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.utils.transaction import transaction_scope


def _session():
    db = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


@pytest.mark.asyncio
async def test_commits_block():
    db = _session()
    async with transaction_scope(db) as tx:
        pass
    db.commit.assert_awaited_once()
    db.rollback.assert_not_awaited()
    assert tx.results == []


@pytest.mark.asyncio
async def test_rolls_back_and_skips_actions_on_error():
    db = _session()
    action = AsyncMock()
    with pytest.raises(RuntimeError):
        async with transaction_scope(db) as tx:
            tx.after_commit("notify", action)
            raise RuntimeError("boom")
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()
    action.assert_not_awaited()


@pytest.mark.asyncio
async def test_after_commit_results():
    db = _session()
    calls = []

    async def ok():
        calls.append("ok")
        return 2

    async def broken():
        calls.append("broken")
        raise ValueError("no rows")

    async with transaction_scope(db) as tx:
        tx.after_commit("first", ok)
        tx.after_commit("second", broken)
        assert calls == []

    assert calls == ["ok", "broken"]
    assert tx.result("first").as_dict() == {"name": "first", "ok": True, "value": 2, "error": None}
    assert tx.result("second").ok is False
    assert tx.result("second").error == "no rows"
    assert tx.result("missing") is None
    # block commit + one commit for the successful action
    assert db.commit.await_count == 2
    db.rollback.assert_awaited_once()
