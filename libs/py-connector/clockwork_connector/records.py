"""
Wearable record storage.

Records are keyed by user, day and provider:
    - pk: "USER#{user_id}"
    - sk: "{YYYY-MM-DD}#{provider}"

so that a put is an idempotent upsert: syncing the same day twice replaces
the row instead of adding a second one. Metrics are stored as a JSON string,
scores and status as top-level attributes for inspection.
"""

import json
import logging
import threading
from datetime import UTC, date, datetime, timedelta
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from clockwork_scores import DerivedMetrics, NormalizedMetrics

from .exceptions import StoreError
from .vendor_types import SyncStatus, VendorType, WearableRecord

logger = logging.getLogger(__name__)

DEFAULT_QUERY_LIMIT = 30


class RecordStore:
    """DynamoDB-based WearableRecord storage."""

    def __init__(
        self,
        table_name: str,
        region_name: str = "us-east-1",
        local_mode: bool = False,
        table: Any = None,
    ):
        """
        Initialize RecordStore.

        Args:
            table_name: DynamoDB table name
            region_name: AWS region name
            local_mode: Keep records in memory instead of DynamoDB (single-instance only)
            table: Pre-built boto3 Table resource
        """
        self.table_name = table_name
        self.region_name = region_name
        self.local_mode = local_mode

        self.table = None
        if local_mode:
            self._local_rows: dict[tuple[str, str], dict[str, Any]] = {}
            self._lock = threading.Lock()
        else:
            self.table = table or boto3.resource("dynamodb", region_name=region_name).Table(table_name)

    @staticmethod
    def _make_key(user_id: str, day: date, provider: VendorType) -> tuple[str, str]:
        return f"USER#{user_id}", f"{day.isoformat()}#{provider.value}"

    # ============================================================================
    # Row mapping
    # ============================================================================

    def _to_item(self, record: WearableRecord) -> dict[str, Any]:
        pk, sk = self._make_key(record.user_id, record.date, record.provider)
        item = {
            "pk": pk,
            "sk": sk,
            "user_id": record.user_id,
            "provider": record.provider.value,
            "date": record.date.isoformat(),
            "sync_status": record.sync_status.value,
            "last_synced": record.last_synced.isoformat(),
            "recovery_score": record.derived.recovery_score,
            "training_load": record.derived.training_load,
            "metrics": record.metrics.model_dump_json(),
            "derived": record.derived.model_dump_json(),
        }
        if record.error:
            item["error"] = record.error
        return item

    @staticmethod
    def _from_item(item: dict[str, Any]) -> WearableRecord:
        return WearableRecord(
            user_id=item["user_id"],
            provider=VendorType(item["provider"]),
            date=date.fromisoformat(item["date"]),
            metrics=NormalizedMetrics.model_validate_json(item["metrics"]),
            derived=DerivedMetrics.model_validate_json(item["derived"]),
            last_synced=datetime.fromisoformat(item["last_synced"]),
            sync_status=SyncStatus(item["sync_status"]),
            error=item.get("error"),
        )

    # ============================================================================
    # Operations
    # ============================================================================

    def upsert(self, record: WearableRecord) -> WearableRecord:
        """
        Write a record, replacing any existing row for the same (user, day, provider).

        Raises:
            StoreError: If the write fails
        """
        item = self._to_item(record)

        if self.local_mode:
            with self._lock:
                self._local_rows[(item["pk"], item["sk"])] = item
        else:
            try:
                self.table.put_item(Item=item)
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to store record: {e}", provider=record.provider.value) from e

        logger.debug(
            "Upserted %s record for user %s on %s (%s)",
            record.provider.value,
            record.user_id,
            record.date,
            record.sync_status.value,
        )
        return record

    def get(self, user_id: str, provider: VendorType, day: date) -> WearableRecord | None:
        """Load one day's record."""
        pk, sk = self._make_key(user_id, day, provider)

        if self.local_mode:
            with self._lock:
                item = self._local_rows.get((pk, sk))
        else:
            try:
                response = self.table.get_item(Key={"pk": pk, "sk": sk}, ConsistentRead=True)
            except (ClientError, BotoCoreError) as e:
                raise StoreError(f"Failed to get record: {e}", provider=provider.value) from e
            item = response.get("Item")

        return self._from_item(item) if item else None

    def mark_failed(
        self,
        user_id: str,
        provider: VendorType,
        day: date,
        error: str,
        when: datetime | None = None,
    ) -> WearableRecord:
        """
        Record a failed day.

        Metrics already stored for the day are kept; only the status, error
        and sync time change. A day with no row gets an empty failed record.
        """
        when = when or datetime.now(UTC)
        existing = self.get(user_id, provider, day)

        if existing is None:
            record = WearableRecord(
                user_id=user_id,
                provider=provider,
                date=day,
                last_synced=when,
                sync_status=SyncStatus.FAILED,
                error=error,
            )
        else:
            record = existing.model_copy(
                update={"sync_status": SyncStatus.FAILED, "error": error, "last_synced": when}
            )

        return self.upsert(record)

    def query(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        provider: VendorType | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> list[WearableRecord]:
        """
        List a user's records, newest day first.

        Args:
            user_id: User identifier
            start: First day to include (inclusive)
            end: Last day to include (inclusive)
            provider: Optional provider filter
            limit: Maximum records to return

        Returns:
            List of WearableRecord
        """
        pk = f"USER#{user_id}"
        low = start.isoformat() if start else "0000-00-00"
        # "~" sorts after every provider name
        high = f"{end.isoformat()}#~" if end else "9999-99-99#~"

        if self.local_mode:
            with self._lock:
                items = [
                    item
                    for (row_pk, row_sk), item in self._local_rows.items()
                    if row_pk == pk and low <= row_sk <= high
                ]
            items.sort(key=lambda item: item["sk"], reverse=True)
            if provider:
                items = [item for item in items if item["provider"] == provider.value]
            return [self._from_item(item) for item in items[:limit]]

        query_kwargs: dict[str, Any] = {
            "KeyConditionExpression": "pk = :pk AND sk BETWEEN :low AND :high",
            "ExpressionAttributeValues": {":pk": pk, ":low": low, ":high": high},
            "ScanIndexForward": False,
        }
        if provider:
            query_kwargs["FilterExpression"] = "#provider = :provider"
            query_kwargs["ExpressionAttributeNames"] = {"#provider": "provider"}
            query_kwargs["ExpressionAttributeValues"][":provider"] = provider.value

        items: list[dict[str, Any]] = []
        try:
            while len(items) < limit:
                response = self.table.query(**query_kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise StoreError(f"Failed to query records: {e}") from e

        return [self._from_item(item) for item in items[:limit]]

    def latest_complete(
        self,
        user_id: str,
        provider: VendorType,
        today: date | None = None,
    ) -> WearableRecord | None:
        """
        Most recent day worth showing.

        Today's record wins if it already has meaningful data (more than 100
        steps or any sleep); otherwise yesterday's is returned, falling back
        to today's sparse record when yesterday has none.
        """
        today = today or datetime.now(UTC).date()
        current = self.get(user_id, provider, today)
        if current is not None and current.has_meaningful_data:
            return current

        previous = self.get(user_id, provider, today - timedelta(days=1))
        return previous or current
