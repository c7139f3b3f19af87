"""Availability store — live health state per (capability, provider).

The single shared mutable resource of the orchestration core.  Every
component reads and writes health through ``record_success``,
``record_failure`` and ``is_healthy`` so the health policy stays in one
place.  Updates are atomic per key; readers only ever get copies.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone

import structlog

from genhub.domain.enums import Capability
from genhub.shared.providers.registry import coerce_capability
from genhub.shared.providers.types import AvailabilityRecord

logger = structlog.get_logger(__name__)

_Key = tuple[Capability, str]


class AvailabilityStore:
    """Thread-safe, per-key health records with a consecutive-failure threshold."""

    def __init__(self, *, failure_threshold: int = 1) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self._threshold = failure_threshold
        self._records: dict[_Key, AvailabilityRecord] = {}
        self._locks: dict[_Key, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    @property
    def failure_threshold(self) -> int:
        return self._threshold

    # ── Recording ────────────────────────────────────────────
    def record_success(self, capability: Capability | str, provider_name: str) -> None:
        capability = coerce_capability(capability)
        key = (capability, provider_name)
        with self._lock_for(key):
            record = self._record_for(key)
            recovered = not record.healthy
            record.healthy = True
            record.consecutive_failures = 0
            record.last_checked_at = datetime.now(timezone.utc)
            record.last_error = None
        if recovered:
            logger.info(
                "provider_marked_healthy",
                capability=capability.value,
                provider=provider_name,
            )

    def record_failure(
        self,
        capability: Capability | str,
        provider_name: str,
        error: str | None = None,
    ) -> None:
        capability = coerce_capability(capability)
        key = (capability, provider_name)
        with self._lock_for(key):
            record = self._record_for(key)
            record.consecutive_failures += 1
            record.last_checked_at = datetime.now(timezone.utc)
            record.last_error = error
            tripped = record.healthy and record.consecutive_failures >= self._threshold
            if tripped:
                record.healthy = False
            failures = record.consecutive_failures
        if tripped:
            logger.warning(
                "provider_marked_unhealthy",
                capability=capability.value,
                provider=provider_name,
                consecutive_failures=failures,
                threshold=self._threshold,
            )

    def reset(self, capability: Capability | str, provider_name: str) -> None:
        """Admin override — forget observed failures for one pair."""
        capability = coerce_capability(capability)
        key = (capability, provider_name)
        with self._lock_for(key):
            self._records[key] = AvailabilityRecord(capability, provider_name)
        logger.info("provider_availability_reset", capability=capability.value, provider=provider_name)

    # ── Reading ──────────────────────────────────────────────
    def is_healthy(self, capability: Capability | str, provider_name: str) -> bool:
        capability = coerce_capability(capability)
        key = (capability, provider_name)
        with self._lock_for(key):
            record = self._records.get(key)
            return True if record is None else record.healthy

    def get(self, capability: Capability | str, provider_name: str) -> AvailabilityRecord:
        capability = coerce_capability(capability)
        key = (capability, provider_name)
        with self._lock_for(key):
            return replace(self._record_for(key))

    def snapshot(self) -> list[AvailabilityRecord]:
        with self._registry_lock:
            keys = list(self._records)
        result: list[AvailabilityRecord] = []
        for key in keys:
            with self._lock_for(key):
                result.append(replace(self._records[key]))
        return sorted(result, key=lambda r: (r.capability.value, r.provider_name))

    # ── Internals ────────────────────────────────────────────
    def _lock_for(self, key: _Key) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _record_for(self, key: _Key) -> AvailabilityRecord:
        """Lazily create the record (caller holds the key lock)."""
        record = self._records.get(key)
        if record is None:
            with self._registry_lock:
                record = self._records.setdefault(key, AvailabilityRecord(*key))
        return record
