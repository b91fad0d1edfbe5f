"""
Entity locking and unit-of-work service.

Serializes concurrent operations on the same plan, partner, plot, commission
or bank account, and makes every public ledger operation all-or-nothing.

Two layers:
1. In-process asyncio locks keyed by (entity, id), taken in sorted order.
2. Row locks (SELECT ... FOR UPDATE) for multi-process deployments.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Tuple, Type, TypeVar, Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import NotFoundError

LockKey = Tuple[str, int]
ModelT = TypeVar("ModelT")


class EntityLockRegistry:
    """
    Registry of per-entity asyncio locks.

    A lock lives only while someone holds or waits on it, so the registry
    never grows without bound and never outlives an event loop.
    """

    def __init__(self):
        self._locks: Dict[LockKey, asyncio.Lock] = {}
        self._users: Dict[LockKey, int] = {}

    def _checkout(self, key: LockKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: LockKey) -> None:
        remaining = self._users.get(key, 0) - 1
        if remaining <= 0:
            self._users.pop(key, None)
            self._locks.pop(key, None)
        else:
            self._users[key] = remaining

    def is_locked(self, key: LockKey) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, *keys: LockKey):
        """Acquire every key in sorted order; release in reverse."""
        acquired = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                try:
                    await lock.acquire()
                except BaseException:
                    self._checkin(key)
                    raise
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._locks[key].release()
                self._checkin(key)


entity_locks = EntityLockRegistry()


def lock_key(entity: str, entity_id: int) -> LockKey:
    return (entity, int(entity_id))


@asynccontextmanager
async def unit_of_work(db: AsyncSession, *keys: LockKey):
    """
    Transaction boundary for one public operation.

    Holds the entity locks for the whole operation, commits on success and
    rolls back everything flushed inside the block on any error.

    Usage:
        async with unit_of_work(db, lock_key("installment_plan", plan_id)):
            plan = await get_for_update(db, InstallmentPlan, plan_id, "Installment plan")
            ...
    """
    async with entity_locks.hold(*keys):
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise


async def get_for_update(
    db: AsyncSession,
    model: Type[ModelT],
    entity_id: Any,
    resource_name: str
) -> ModelT:
    """
    Load a row with a row lock and fresh attribute values.

    Raises:
        NotFoundError: If no row has the given id
    """
    result = await db.execute(
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    instance = result.scalar_one_or_none()
    if instance is None:
        raise NotFoundError(resource_name, entity_id)
    return instance
