"""Transaction scope with best-effort post-commit side effects."""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

PostCommitAction = Callable[[], Awaitable[Any]]


@dataclass
class PostCommitResult:
    """Outcome of one post-commit action."""
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "ok": self.ok, "value": self.value, "error": self.error}


@dataclass
class TransactionScope:
    """
    Handle yielded by ``transaction_scope``.

    Work done on ``db`` inside the block commits together. Actions queued
    with ``after_commit`` run only once the commit succeeded, each in its own
    short transaction; their failures are logged and recorded in ``results``
    but never undo the committed work.
    """
    db: AsyncSession
    _actions: List[tuple] = field(default_factory=list)
    results: List[PostCommitResult] = field(default_factory=list)

    def after_commit(self, name: str, action: PostCommitAction) -> None:
        self._actions.append((name, action))

    def result(self, name: str) -> Optional[PostCommitResult]:
        for item in self.results:
            if item.name == name:
                return item
        return None

    async def _run_after_commit(self) -> None:
        for name, action in self._actions:
            try:
                value = await action()
                await self.db.commit()
            except Exception as exc:
                await self.db.rollback()
                logger.error(
                    "Post-commit action failed",
                    extra={"action": name, "error": str(exc)},
                    exc_info=True,
                )
                self.results.append(PostCommitResult(name=name, ok=False, error=str(exc)))
            else:
                self.results.append(PostCommitResult(name=name, ok=True, value=value))


@asynccontextmanager
async def transaction_scope(db: AsyncSession) -> AsyncIterator[TransactionScope]:
    """
    Commit the block atomically, roll back on any error, then run post-commit actions.

    Example:
        ```python
        async with transaction_scope(db) as tx:
            db.add(bill)
            tx.after_commit("notification", lambda: fan_out(db, bill))
        ```
    """
    scope = TransactionScope(db=db)
    try:
        yield scope
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await scope._run_after_commit()
