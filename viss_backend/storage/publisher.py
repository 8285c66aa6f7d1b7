"""
Cache Publisher
===============

Writes one run's four series under fresh keys, then moves the
"latest" pointers.

KEY SCHEME:
    <metric>:timeline:<epochSeconds>
    <metric>:timeline:<epochSeconds>:seed:<seed>      (seed supplied)
    <metric>:timeline:latest                          (pointer)

Writes are best-effort: every failure is recorded and the remaining
writes still run. A pointer is only moved for a metric whose concrete
write succeeded.
"""

from __future__ import annotations
from typing import Callable, List, Optional
import time

from ..contracts.base import Error, ErrorCode, RunContext
from ..contracts.events import AuditLogEntry, AuditEventType
from ..contracts.series import Metric, PublishResult, TimelineBundle
from ..domain.serialization import serialize_series
from . import CacheConnection, CacheConnector, CacheStoreError


LATEST = "latest"


def timeline_key(metric: Metric, published_at: int, seed: Optional[int] = None) -> str:
    key = f"{metric.value}:timeline:{published_at}"
    if seed is not None:
        key += f":seed:{seed}"
    return key


def latest_pointer_key(metric: Metric) -> str:
    return f"{metric.value}:timeline:{LATEST}"


def is_timeline_key(metric: Metric, key: str) -> bool:
    """True for a concrete series key of metric; pointer keys do not count."""
    return key.startswith(f"{metric.value}:timeline:") and key != latest_pointer_key(metric)


class CachePublisher:
    """
    Publishes TimelineBundles through a CacheConnector.

    clock returns whole epoch seconds; injectable for deterministic keys.
    """

    def __init__(
        self,
        connector: CacheConnector,
        clock: Optional[Callable[[], int]] = None
    ):
        self._connector = connector
        self._clock = clock or (lambda: int(time.time()))
        self._audit_log: List[AuditLogEntry] = []

    def publish(self, bundle: TimelineBundle, context: RunContext) -> PublishResult:
        connection = self._connector.connect()
        if connection.is_failure:
            self._log_audit(
                action="publish_skipped",
                event_type=AuditEventType.ERROR,
                metadata=(("reason", connection.error.message),) + connection.error.context
            )
            return PublishResult(errors=(connection.error,))

        return self.publish_to(connection.value, bundle, context)

    def publish_to(
        self,
        connection: CacheConnection,
        bundle: TimelineBundle,
        context: RunContext
    ) -> PublishResult:
        store = connection.store
        published_at = self._clock()
        written = []
        errors = []

        for metric, series in bundle.by_metric().items():
            key = timeline_key(metric, published_at, context.seed)
            try:
                store.set(key, serialize_series(series))
            except CacheStoreError as e:
                errors.append(self._write_failed(key, e))
                continue
            written.append((metric, key))
            self._log_audit(
                action="series_written",
                entity_id=key,
                metadata=(("points", len(series)),)
            )

        for metric, key in written:
            pointer = latest_pointer_key(metric)
            try:
                store.set(pointer, key)
            except CacheStoreError as e:
                errors.append(self._write_failed(pointer, e))
                continue
            self._log_audit(
                action="pointer_moved",
                entity_id=pointer,
                metadata=(("target", key),)
            )

        return PublishResult(
            keys=tuple(written),
            errors=tuple(errors),
            endpoint=connection.endpoint.describe()
        )

    def _write_failed(self, key: str, exc: CacheStoreError) -> Error:
        error = Error.create(ErrorCode.CACHE_WRITE_FAILED, str(exc), key=key)
        self._log_audit(
            action="write_failed",
            event_type=AuditEventType.ERROR,
            entity_id=key,
            metadata=(("reason", str(exc)),)
        )
        return error

    def _log_audit(
        self,
        action: str,
        event_type: AuditEventType = AuditEventType.PUBLISH,
        entity_id: Optional[str] = None,
        metadata: tuple = ()
    ):
        """Add entry to internal audit log."""
        self._audit_log.append(AuditLogEntry.create(
            event_type=event_type,
            layer="storage",
            action=action,
            entity_id=entity_id,
            entity_type="cache_key" if entity_id else None,
            metadata=metadata
        ))

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Return copy of audit log entries."""
        return list(self._audit_log)

    def drain_audit_log(self) -> List[AuditLogEntry]:
        """Return and clear collected entries."""
        entries, self._audit_log = self._audit_log, []
        return entries
