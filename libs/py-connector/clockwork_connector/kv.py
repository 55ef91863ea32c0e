"""
Shared key-value store for OAuth state, token cache and rate-limit windows.

Two backends:
    - DynamoKeyValueStore: a DynamoDB table shared by every service instance.
      Atomic operations use conditional writes; expiry is checked on read
      because DynamoDB TTL deletion is lazy.
    - MemoryKeyValueStore: a lock-guarded dict. Single-instance only: state,
      cache entries and counters are invisible to other processes. Expired
      entries are swept on writes at most every SWEEP_INTERVAL seconds.

Table schema (DynamoKeyValueStore):
    - Partition key: pk (string)
    - Attributes:
        - payload: string (JSON)
        - expires_at: number (unix timestamp, TTL attribute)
        - hits: number (rate-limit windows only)
        - reset_at_ms: number (rate-limit windows only)
"""

import json
import math
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StoreError

Clock = Callable[[], float]

# Seconds between full expiry sweeps of the in-process store.
SWEEP_INTERVAL = 60.0


@dataclass(frozen=True)
class WindowHit:
    """Result of counting one request against a fixed window."""

    allowed: bool
    count: int
    reset_at: float  # unix seconds

    def retry_after(self, now: float) -> int:
        return max(0, math.ceil(self.reset_at - now))


class KeyValueStore(ABC):
    """Interface shared by the store backends."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or time.time

    @abstractmethod
    def put(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        """Write ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """Return the live value for ``key`` or None."""

    @abstractmethod
    def pop(self, key: str) -> dict[str, Any] | None:
        """Atomically read and delete ``key``. Only one caller ever sees the value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    def hit_window(self, key: str, limit: int, window_seconds: int) -> WindowHit:
        """
        Count one request against the fixed window stored at ``key``.

        First hit, or any hit after the window's reset time, starts a new
        window at count 1. A hit on a full live window is denied and does not
        change the counter.
        """

    @abstractmethod
    def read_window(self, key: str) -> WindowHit | None:
        """Current window state without counting a hit."""


# ============================================================================
# In-process backend
# ============================================================================


class MemoryKeyValueStore(KeyValueStore):
    """
    Lock-guarded in-process store.

    Single-instance only. Use it for local development, tests, or as an
    explicitly enabled fallback; never as the shared store of a
    multi-instance deployment.
    """

    def __init__(self, clock: Clock | None = None, sweep_interval: float = SWEEP_INTERVAL):
        super().__init__(clock)
        self._items: dict[str, tuple[dict[str, Any], float | None]] = {}
        self._windows: dict[str, tuple[int, float]] = {}
        self._lock = threading.Lock()
        self.sweep_interval = sweep_interval
        self._last_sweep = self.clock()

    def _sweep(self, now: float) -> None:
        """Evict expired items and finished windows. Caller holds the lock."""
        if now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now

        expired = [key for key, (_, expires_at) in self._items.items() if expires_at is not None and now >= expires_at]
        for key in expired:
            del self._items[key]
        finished = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in finished:
            del self._windows[key]

    def size(self) -> int:
        """Entries currently held, live or not yet swept."""
        with self._lock:
            return len(self._items) + len(self._windows)

    def _live(self, key: str, now: float) -> dict[str, Any] | None:
        entry = self._items.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and now >= expires_at:
            del self._items[key]
            return None
        return value

    def put(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        with self._lock:
            now = self.clock()
            self._sweep(now)
            expires_at = now + ttl if ttl else None
            self._items[key] = (dict(value), expires_at)

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._live(key, self.clock())
            return dict(value) if value is not None else None

    def pop(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            value = self._live(key, self.clock())
            if value is None:
                return None
            del self._items[key]
            return value

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)
            self._windows.pop(key, None)

    def hit_window(self, key: str, limit: int, window_seconds: int) -> WindowHit:
        with self._lock:
            now = self.clock()
            self._sweep(now)
            current = self._windows.get(key)

            if current is None or now > current[1]:
                reset_at = now + window_seconds
                self._windows[key] = (1, reset_at)
                return WindowHit(True, 1, reset_at)

            count, reset_at = current
            if count >= limit:
                return WindowHit(False, count, reset_at)

            self._windows[key] = (count + 1, reset_at)
            return WindowHit(True, count + 1, reset_at)

    def read_window(self, key: str) -> WindowHit | None:
        with self._lock:
            current = self._windows.get(key)
            if current is None:
                return None
            count, reset_at = current
            return WindowHit(True, count, reset_at)


# ============================================================================
# DynamoDB backend
# ============================================================================


class DynamoKeyValueStore(KeyValueStore):
    """DynamoDB-backed store shared across service instances."""

    def __init__(
        self,
        table_name: str,
        region_name: str = "us-east-1",
        clock: Clock | None = None,
        table: Any = None,
    ):
        """
        Initialize the store.

        Args:
            table_name: DynamoDB table name
            region_name: AWS region name
            clock: Time source returning unix seconds
            table: Pre-built boto3 Table resource (tests)
        """
        super().__init__(clock)
        self.table_name = table_name
        self.region_name = region_name

        if table is None:
            table = boto3.resource("dynamodb", region_name=region_name).Table(table_name)
        self.table = table

    @staticmethod
    def _error_code(error: Exception) -> str:
        return getattr(error, "response", {}).get("Error", {}).get("Code", "Unknown")

    def _store_error(self, action: str, error: Exception) -> StoreError:
        return StoreError(f"Failed to {action}: {self._error_code(error)}")

    def _decode(self, item: dict[str, Any] | None, now: float) -> dict[str, Any] | None:
        if not item or "payload" not in item:
            return None
        expires_at = item.get("expires_at")
        if expires_at is not None and now >= float(expires_at):
            return None
        return json.loads(item["payload"])

    def put(self, key: str, value: dict[str, Any], ttl: int | None = None) -> None:
        item: dict[str, Any] = {"pk": key, "payload": json.dumps(value, default=str)}
        if ttl:
            item["expires_at"] = math.ceil(self.clock() + ttl)

        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("write cache entry", e) from e

    def get(self, key: str) -> dict[str, Any] | None:
        try:
            response = self.table.get_item(Key={"pk": key}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("read cache entry", e) from e
        return self._decode(response.get("Item"), self.clock())

    def pop(self, key: str) -> dict[str, Any] | None:
        try:
            response = self.table.delete_item(Key={"pk": key}, ReturnValues="ALL_OLD")
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("consume cache entry", e) from e
        return self._decode(response.get("Attributes"), self.clock())

    def delete(self, key: str) -> None:
        try:
            self.table.delete_item(Key={"pk": key})
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("delete cache entry", e) from e

    def hit_window(self, key: str, limit: int, window_seconds: int) -> WindowHit:
        # A concurrent reset can land between the two conditional writes;
        # one retry settles it.
        for _ in range(2):
            now = self.clock()
            now_ms = int(now * 1000)

            try:
                response = self.table.update_item(
                    Key={"pk": key},
                    UpdateExpression="SET hits = hits + :one",
                    ConditionExpression="attribute_exists(hits) AND reset_at_ms >= :now AND hits < :limit",
                    ExpressionAttributeValues={":one": 1, ":now": now_ms, ":limit": limit},
                    ReturnValues="ALL_NEW",
                )
                attrs = response["Attributes"]
                return WindowHit(True, int(attrs["hits"]), int(attrs["reset_at_ms"]) / 1000)
            except ClientError as e:
                if self._error_code(e) != "ConditionalCheckFailedException":
                    raise self._store_error("count request", e) from e
            except BotoCoreError as e:
                raise self._store_error("count request", e) from e

            reset_at_ms = now_ms + window_seconds * 1000
            try:
                self.table.put_item(
                    Item={
                        "pk": key,
                        "hits": 1,
                        "reset_at_ms": reset_at_ms,
                        "expires_at": math.ceil(now + window_seconds) + 60,
                    },
                    ConditionExpression="attribute_not_exists(hits) OR reset_at_ms < :now",
                    ExpressionAttributeValues={":now": now_ms},
                )
                return WindowHit(True, 1, reset_at_ms / 1000)
            except ClientError as e:
                if self._error_code(e) != "ConditionalCheckFailedException":
                    raise self._store_error("open rate window", e) from e
            except BotoCoreError as e:
                raise self._store_error("open rate window", e) from e

            current = self.read_window(key)
            if current is not None and current.count >= limit:
                return WindowHit(False, current.count, current.reset_at)

        current = self.read_window(key)
        if current is None:
            return WindowHit(False, limit, self.clock() + window_seconds)
        return WindowHit(False, current.count, current.reset_at)

    def read_window(self, key: str) -> WindowHit | None:
        try:
            response = self.table.get_item(Key={"pk": key}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as e:
            raise self._store_error("read rate window", e) from e

        item = response.get("Item")
        if not item or "hits" not in item:
            return None
        return WindowHit(True, int(item["hits"]), int(item["reset_at_ms"]) / 1000)
