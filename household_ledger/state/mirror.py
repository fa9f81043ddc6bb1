"""
Remote Mirror

Fire-and-forget propagation of local mutations to the remote store.

DESIGN DECISION: Local state is the source of truth for the user; the
remote store is a best-effort backup. A mirror write:
- never blocks the command that issued it
- is never retried and never rolled back
- reports its outcome as the task result (True on success, False on
  failure) and through the audit log

Scheduling needs a running event loop. Pending tasks are kept referenced
until they finish, and drain() waits for all of them.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from household_ledger.audit import AuditLogger
from household_ledger.models.audit import AuditEventBuilder
from household_ledger.models.household import LedgerModel
from household_ledger.services.storage.interface import (
    Collection,
    StoreGatewayInterface,
)


class MirrorWriteFailure(Exception):
    """A remote write failed after the local mutation was applied."""

    def __init__(
        self,
        collection: str,
        operation: str,
        entity_id: Optional[str],
        cause: Exception,
    ):
        self.collection = collection
        self.operation = operation
        self.entity_id = entity_id
        self.cause = cause
        super().__init__(f"Remote {operation} on {collection} ({entity_id}) failed: {cause}")


class RemoteMirror:
    """Schedules gateway writes as background tasks."""

    def __init__(
        self,
        gateway: StoreGatewayInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._gateway = gateway
        self._audit_logger = audit_logger
        self._pending: set[asyncio.Task] = set()
        self.failures: list[MirrorWriteFailure] = []

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def submit(
        self,
        tenant_id: Optional[str],
        collection: str,
        operation: str,
        entity_id: Optional[str],
        call: Callable[[], Awaitable[Any]],
    ) -> asyncio.Task:
        """
        Run a gateway call in the background.

        Raises:
            RuntimeError: If no event loop is running
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(tenant_id, collection, operation, entity_id, call)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _run(
        self,
        tenant_id: Optional[str],
        collection: str,
        operation: str,
        entity_id: Optional[str],
        call: Callable[[], Awaitable[Any]],
    ) -> bool:
        try:
            await call()
        except Exception as e:
            failure = MirrorWriteFailure(collection, operation, entity_id, e)
            self.failures.append(failure)
            if self._audit_logger:
                self._audit_logger.log_mirror_failed(
                    tenant_id=tenant_id,
                    collection=collection,
                    operation=operation,
                    entity_id=entity_id,
                    error_message=str(failure),
                )
            return False

        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.mirror_write_completed(
                tenant_id=tenant_id,
                collection=collection,
                operation=operation,
                entity_id=entity_id,
            ))
        return True

    def insert(
        self,
        tenant_id: str,
        collection: Collection,
        entity: LedgerModel,
    ) -> asyncio.Task:
        return self.submit(
            tenant_id, collection.value, "insert", entity.id,
            lambda: self._gateway.insert(collection, tenant_id, entity),
        )

    def update(
        self,
        tenant_id: str,
        collection: Collection,
        entity_id: str,
        patch: dict[str, Any],
    ) -> asyncio.Task:
        return self.submit(
            tenant_id, collection.value, "update", entity_id,
            lambda: self._gateway.update(collection, entity_id, patch),
        )

    def delete(
        self,
        tenant_id: str,
        collection: Collection,
        entity_id: str,
    ) -> asyncio.Task:
        return self.submit(
            tenant_id, collection.value, "delete", entity_id,
            lambda: self._gateway.delete(collection, entity_id),
        )

    def update_profile(self, tenant_id: str, patch: dict[str, Any]) -> asyncio.Task:
        return self.submit(
            tenant_id, "families", "update", tenant_id,
            lambda: self._gateway.update_profile(tenant_id, patch),
        )

    async def drain(self) -> None:
        """Wait for every pending write, including ones scheduled meanwhile."""
        while True:
            pending = [task for task in self._pending if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending)
