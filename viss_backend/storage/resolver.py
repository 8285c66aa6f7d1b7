"""
Retrieval Resolver
==================

Read side of the timeline cache.

    get_by_key(key)       key -> value
    get_latest(metric)    pointer -> key -> value

Not-found at either hop is a failure Result, never an exception.
Reads never write.
"""

from __future__ import annotations
from typing import List, Optional

from ..contracts.base import Error, ErrorCode, Result
from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.series import Metric
from . import CacheConnector, CacheStore, CacheStoreError
from .publisher import latest_pointer_key


class RetrievalResolver:
    """Resolves series bodies through a CacheConnector."""

    def __init__(self, connector: CacheConnector):
        self._connector = connector
        self._audit_log: List[AuditLogEntry] = []

    def get_by_key(self, key: str) -> Result:
        store = self._connect()
        if store.is_failure:
            return store
        return self._read(store.value, key, ErrorCode.KEY_NOT_FOUND)

    def get_latest(self, metric: Metric) -> Result:
        store = self._connect()
        if store.is_failure:
            return store

        pointer = latest_pointer_key(metric)
        target = self._read(store.value, pointer, ErrorCode.POINTER_NOT_FOUND)
        if target.is_failure:
            return target

        return self._read(store.value, target.value, ErrorCode.KEY_NOT_FOUND)

    def resolve_latest_key(self, metric: Metric) -> Result:
        """First hop only: the concrete key the pointer names."""
        store = self._connect()
        if store.is_failure:
            return store
        return self._read(store.value, latest_pointer_key(metric), ErrorCode.POINTER_NOT_FOUND)

    def _connect(self) -> Result:
        connection = self._connector.connect()
        if connection.is_failure:
            self._log_audit("read_skipped", event_type=AuditEventType.ERROR,
                            metadata=(("reason", connection.error.message),))
            return connection
        return Result.success(connection.value.store)

    def _read(self, store: CacheStore, key: str, missing: ErrorCode) -> Result:
        try:
            value = store.get(key)
        except CacheStoreError as e:
            self._log_audit("read_failed", event_type=AuditEventType.ERROR,
                            entity_id=key, metadata=(("reason", str(e)),))
            return Result.failure(Error.create(ErrorCode.CACHE_READ_FAILED, str(e), key=key))

        if value is None:
            self._log_audit("read_missing", entity_id=key)
            return Result.failure(Error.create(missing, f"No value stored at {key}", key=key))

        self._log_audit("read_hit", entity_id=key)
        return Result.success(value)

    def _log_audit(
        self,
        action: str,
        event_type: AuditEventType = AuditEventType.RETRIEVAL,
        entity_id: Optional[str] = None,
        metadata: tuple = ()
    ):
        self._audit_log.append(AuditLogEntry.create(
            event_type=event_type,
            layer="storage",
            action=action,
            entity_id=entity_id,
            metadata=metadata
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        return list(self._audit_log)

    def drain_audit_log(self) -> List[AuditLogEntry]:
        entries, self._audit_log = self._audit_log, []
        return entries
