"""
Connection storage using DynamoDB with KMS encryption.

One row per (provider, user). Tokens are encrypted with KMS when a key is
configured and base64 encoded otherwise. Reads go through a short-TTL cache
entry in the shared key-value store; every write or delete invalidates it.
"""

import base64
import logging
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import StoreError
from .kv import KeyValueStore
from .vendor_types import Connection, VendorType

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = 3600


def _to_epoch(value: datetime | None) -> int | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp())


def _from_epoch(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC)


class ConnectionStore:
    """
    DynamoDB-based connection storage.

    Table schema:
    - Partition key: connection_key (string) - format: "{provider}:{user_id}"
    - Attributes:
        - provider, user_id: string
        - connected: bool
        - access_token, refresh_token: string (KMS ciphertext or base64, base64 encoded)
        - expires_at: number (unix timestamp, optional)
        - external_user_id: string (optional)
        - scopes: list of strings
        - last_sync: number (unix timestamp, optional)
        - created_at, updated_at: number (unix timestamp)
    """

    def __init__(
        self,
        table_name: str,
        kms_key_id: str | None = None,
        region_name: str = "us-east-1",
        cache: KeyValueStore | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
        local_mode: bool = False,
        table: Any = None,
        kms_client: Any = None,
    ):
        """
        Initialize ConnectionStore.

        Args:
            table_name: DynamoDB table name
            kms_key_id: Optional KMS key ID for encryption
            region_name: AWS region name
            cache: Shared key-value store for the read-through token cache
            cache_ttl: Cache entry lifetime in seconds
            local_mode: Keep rows in memory instead of DynamoDB (single-instance only)
            table: Pre-built boto3 Table resource
            kms_client: Pre-built boto3 KMS client
        """
        self.table_name = table_name
        self.kms_key_id = kms_key_id
        self.region_name = region_name
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.local_mode = local_mode

        self.table = None
        self.kms = None
        if local_mode:
            self._local_rows: dict[str, dict[str, Any]] = {}
        else:
            self.table = table or boto3.resource("dynamodb", region_name=region_name).Table(table_name)

        if kms_key_id:
            self.kms = kms_client or boto3.client("kms", region_name=region_name)

    @staticmethod
    def _connection_key(provider: VendorType, user_id: str) -> str:
        return f"{provider.value}:{user_id}"

    @staticmethod
    def _cache_key(user_id: str, provider: VendorType) -> str:
        return f"token:{user_id}:{provider.value}"

    # ============================================================================
    # Encryption
    # ============================================================================

    def _encrypt(self, plaintext: str) -> str:
        """Encrypt a token with KMS, or base64 encode it when no key is set."""
        if not self.kms or not self.kms_key_id:
            return base64.b64encode(plaintext.encode("utf-8")).decode("ascii")

        try:
            response = self.kms.encrypt(KeyId=self.kms_key_id, Plaintext=plaintext.encode("utf-8"))
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to encrypt token: {e}") from e
        return base64.b64encode(response["CiphertextBlob"]).decode("ascii")

    def _decrypt(self, ciphertext: str) -> str:
        """Reverse of _encrypt."""
        raw = base64.b64decode(ciphertext)
        if not self.kms or not self.kms_key_id:
            return raw.decode("utf-8")

        try:
            response = self.kms.decrypt(CiphertextBlob=raw)
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to decrypt token: {e}") from e
        return response["Plaintext"].decode("utf-8")

    # ============================================================================
    # Row mapping
    # ============================================================================

    def _to_item(self, connection: Connection) -> dict[str, Any]:
        item: dict[str, Any] = {
            "connection_key": self._connection_key(connection.provider, connection.user_id),
            "provider": connection.provider.value,
            "user_id": connection.user_id,
            "connected": connection.connected,
            "access_token": self._encrypt(connection.access_token),
            "scopes": list(connection.scopes),
            "created_at": _to_epoch(connection.created_at),
            "updated_at": _to_epoch(connection.updated_at),
        }
        if connection.refresh_token:
            item["refresh_token"] = self._encrypt(connection.refresh_token)
        if connection.expires_at:
            item["expires_at"] = _to_epoch(connection.expires_at)
        if connection.external_user_id:
            item["external_user_id"] = connection.external_user_id
        if connection.last_sync:
            item["last_sync"] = _to_epoch(connection.last_sync)
        return item

    def _from_item(self, item: dict[str, Any]) -> Connection:
        refresh = item.get("refresh_token")
        return Connection(
            user_id=item["user_id"],
            provider=VendorType(item["provider"]),
            connected=bool(item.get("connected", True)),
            access_token=self._decrypt(item["access_token"]),
            refresh_token=self._decrypt(refresh) if refresh else None,
            expires_at=_from_epoch(item.get("expires_at")),
            external_user_id=item.get("external_user_id"),
            scopes=list(item.get("scopes") or []),
            last_sync=_from_epoch(item.get("last_sync")),
            created_at=_from_epoch(item.get("created_at")) or datetime.now(UTC),
            updated_at=_from_epoch(item.get("updated_at")) or datetime.now(UTC),
        )

    @staticmethod
    def _cacheable(item: dict[str, Any]) -> dict[str, Any]:
        # DynamoDB returns Decimal for numbers
        return {k: int(v) if k in ("expires_at", "last_sync", "created_at", "updated_at") else v for k, v in item.items()}

    # ============================================================================
    # Cache
    # ============================================================================

    def _cache_get(self, user_id: str, provider: VendorType) -> dict[str, Any] | None:
        if self.cache is None:
            return None
        try:
            return self.cache.get(self._cache_key(user_id, provider))
        except StoreError as e:
            logger.warning("Token cache read failed (%s); reading table", e.message)
            return None

    def _cache_put(self, item: dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.put(
                self._cache_key(item["user_id"], VendorType(item["provider"])),
                self._cacheable(item),
                ttl=self.cache_ttl,
            )
        except StoreError as e:
            logger.warning("Token cache write failed (%s)", e.message)

    def _cache_invalidate(self, user_id: str, provider: VendorType) -> None:
        if self.cache is None:
            return
        try:
            self.cache.delete(self._cache_key(user_id, provider))
        except StoreError as e:
            logger.warning("Token cache invalidation failed for %s:%s (%s)", provider.value, user_id, e.message)

    # ============================================================================
    # Operations
    # ============================================================================

    def save(self, connection: Connection) -> Connection:
        """
        Upsert a connection. ``created_at`` of an existing row is preserved.

        Raises:
            StoreError: If the write fails
        """
        key = self._connection_key(connection.provider, connection.user_id)
        connection = connection.model_copy(update={"updated_at": datetime.now(UTC)})
        item = self._to_item(connection)

        if self.local_mode:
            existing = self._local_rows.get(key)
            if existing:
                item["created_at"] = existing["created_at"]
            self._local_rows[key] = item
        else:
            try:
                response = self.table.get_item(Key={"connection_key": key}, ProjectionExpression="created_at")
                if "Item" in response and "created_at" in response["Item"]:
                    item["created_at"] = int(response["Item"]["created_at"])
                self.table.put_item(Item=item)
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to save connection: {e}", provider=connection.provider.value) from e

        self._cache_invalidate(connection.user_id, connection.provider)
        logger.debug("Saved %s connection for user %s", connection.provider.value, connection.user_id)
        return connection.model_copy(update={"created_at": _from_epoch(item["created_at"])})

    def get(self, user_id: str, provider: VendorType) -> Connection | None:
        """
        Load a connection, via the cache when possible.

        Returns:
            Connection if one exists, None otherwise

        Raises:
            StoreError: If the table read or token decryption fails
        """
        cached = self._cache_get(user_id, provider)
        if cached:
            return self._from_item(cached)

        key = self._connection_key(provider, user_id)
        if self.local_mode:
            item = self._local_rows.get(key)
        else:
            try:
                response = self.table.get_item(Key={"connection_key": key}, ConsistentRead=True)
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to get connection: {e}", provider=provider.value) from e
            item = response.get("Item")

        if not item:
            return None

        self._cache_put(item)
        return self._from_item(item)

    def delete(self, user_id: str, provider: VendorType) -> bool:
        """
        Remove a connection and its cache entry.

        Returns:
            True if a row was removed
        """
        key = self._connection_key(provider, user_id)

        if self.local_mode:
            removed = self._local_rows.pop(key, None) is not None
        else:
            try:
                response = self.table.delete_item(Key={"connection_key": key}, ReturnValues="ALL_OLD")
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to delete connection: {e}", provider=provider.value) from e
            removed = "Attributes" in response

        self._cache_invalidate(user_id, provider)
        return removed

    def list(self, user_id: str | None = None) -> list[Connection]:
        """
        List connections, optionally for one user.

        Args:
            user_id: Optional user filter

        Returns:
            Connections sorted by provider
        """
        if self.local_mode:
            items = [i for i in self._local_rows.values() if user_id is None or i["user_id"] == user_id]
        else:
            scan_kwargs: dict[str, Any] = {}
            if user_id:
                scan_kwargs["FilterExpression"] = "user_id = :user_id"
                scan_kwargs["ExpressionAttributeValues"] = {":user_id": user_id}

            items = []
            try:
                while True:
                    response = self.table.scan(**scan_kwargs)
                    items.extend(response.get("Items", []))
                    last_key = response.get("LastEvaluatedKey")
                    if not last_key:
                        break
                    scan_kwargs["ExclusiveStartKey"] = last_key
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to list connections: {e}") from e

        connections = [self._from_item(item) for item in items]
        return sorted(connections, key=lambda c: (c.user_id, c.provider.value))

    def touch_last_sync(self, user_id: str, provider: VendorType, when: datetime | None = None) -> None:
        """Record a completed sync on the connection row."""
        when = when or datetime.now(UTC)
        key = self._connection_key(provider, user_id)
        ts = _to_epoch(when)

        if self.local_mode:
            row = self._local_rows.get(key)
            if row is not None:
                row["last_sync"] = ts
                row["updated_at"] = ts
        else:
            try:
                self.table.update_item(
                    Key={"connection_key": key},
                    UpdateExpression="SET last_sync = :ts, updated_at = :ts",
                    ConditionExpression="attribute_exists(connection_key)",
                    ExpressionAttributeValues={":ts": ts},
                )
            except ClientError as e:
                if e.response["Error"]["Code"] != "ConditionalCheckFailedException":
                    raise StoreError(f"Failed to update last sync: {e}", provider=provider.value) from e
                logger.info("Connection %s removed during sync; last sync not recorded", key)
            except BotoCoreError as e:
                raise StoreError(f"Failed to update last sync: {e}", provider=provider.value) from e

        self._cache_invalidate(user_id, provider)
