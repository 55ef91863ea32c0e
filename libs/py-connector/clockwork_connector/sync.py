"""
Sync orchestration.

Phases, in order:
    RATE_LIMIT_CHECK    internal quota; no provider call when denied
    ENSURE_FRESH_TOKEN  refresh an expired token, or stop with ReconnectRequired
    FETCHING            every day of the window in parallel
    NORMALIZING         per-day status from the categories that succeeded
    SCORE_COMPUTATION   recovery score and training load
    PERSISTING          one upsert per day keyed by (user, provider, day)

Nothing is written until every fetch has finished, so a cancelled or timed
out sync leaves the stored records exactly as they were.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any

from clockwork_scores import NormalizedMetrics, compute_derived

from .adapters import ProviderAdapter, UnimplementedAdapter
from .authorization import TokenService, parse_provider
from .connections import ConnectionStore
from .exceptions import (
    ConfigurationError,
    NotConnectedError,
    OAuthError,
    ProviderNotImplementedError,
    ProviderUnavailableError,
    ReconnectRequiredError,
    SyncCancelledError,
    UnsupportedProviderError,
    VendorAPIError,
)
from .rate_limit import RateLimiter
from .records import RecordStore
from .vendor_types import (
    ConfiguredProvider,
    Connection,
    ProviderConfig,
    SyncStatus,
    VendorType,
    WearableRecord,
)

logger = logging.getLogger(__name__)

Adapter = ProviderAdapter | UnimplementedAdapter


class SyncPhase(str, Enum):
    """Sync state machine phases."""

    IDLE = "idle"
    RATE_LIMIT_CHECK = "rate_limit_check"
    ENSURE_FRESH_TOKEN = "ensure_fresh_token"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    SCORE_COMPUTATION = "score_computation"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class SyncResult:
    """Outcome of a completed sync."""

    user_id: str
    provider: VendorType
    latest: WearableRecord | None
    records: list[WearableRecord]
    days_stored: int
    synced_at: datetime
    phases: list[SyncPhase] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "data": self.latest.model_dump(mode="json") if self.latest else None,
            "provider": self.provider.value,
            "syncedAt": self.synced_at.isoformat(),
            "daysStored": self.days_stored,
        }


def day_status(metrics: NormalizedMetrics) -> SyncStatus:
    """success when nothing failed, failed when everything did, partial otherwise."""
    attempted = metrics.categories_attempted
    failed = metrics.categories_failed
    if not failed:
        return SyncStatus.SUCCESS
    if attempted and len(failed) >= len(attempted):
        return SyncStatus.FAILED
    return SyncStatus.PARTIAL


class SyncOrchestrator:
    """Runs one sync for a (user, provider)."""

    def __init__(
        self,
        providers: dict[VendorType, ProviderConfig],
        connections: ConnectionStore,
        records: RecordStore,
        rate_limiter: RateLimiter,
        token_service: TokenService,
        adapters: Mapping[VendorType, Adapter],
    ):
        self.providers = providers
        self.connections = connections
        self.records = records
        self.rate_limiter = rate_limiter
        self.token_service = token_service
        self.adapters = adapters

    def _resolve(self, provider: VendorType | str) -> tuple[ConfiguredProvider, ProviderAdapter]:
        vendor = parse_provider(provider)
        config = self.providers.get(vendor)
        if config is None:
            raise UnsupportedProviderError(f"Unsupported provider: {vendor.value}", provider=vendor.value)
        if not isinstance(config, ConfiguredProvider):
            raise ConfigurationError(f"{vendor.display_name} is not configured", provider=vendor.value)

        adapter = self.adapters.get(vendor) or UnimplementedAdapter(vendor)
        if isinstance(adapter, UnimplementedAdapter):
            raise ProviderNotImplementedError(
                f"{vendor.display_name} integration is not implemented yet",
                provider=vendor.value,
            )
        return config, adapter

    async def sync(
        self,
        user_id: str,
        provider: VendorType | str,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
        today: date | None = None,
    ) -> SyncResult:
        """
        Sync the configured day window for one user and provider.

        Args:
            user_id: User identifier
            provider: Provider name
            timeout: Deadline in seconds for the fetch phase
            cancel_event: Set by the caller to abort in-flight fetches
            today: Last day of the window (defaults to the current UTC day)

        Returns:
            SyncResult with the most recent day's record

        Raises:
            UnsupportedProviderError: Unknown provider
            ConfigurationError: Provider credentials missing
            ProviderNotImplementedError: No adapter for the provider
            RateLimitedError: Internal quota exceeded
            NotConnectedError: No connection for the user
            ReconnectRequiredError: Token refresh failed or provider answered 401
            SyncCancelledError: Deadline passed or cancel_event set
            ProviderUnavailableError: No day could be fetched
        """
        phases = [SyncPhase.IDLE]

        def enter(phase: SyncPhase) -> None:
            phases.append(phase)
            logger.debug("sync %s:%s -> %s", provider, user_id, phase.value)

        try:
            config, adapter = self._resolve(provider)
            vendor = config.name

            enter(SyncPhase.RATE_LIMIT_CHECK)
            self.rate_limiter.check_limit(vendor, user_id)

            enter(SyncPhase.ENSURE_FRESH_TOKEN)
            connection = await self._ensure_fresh_token(user_id, vendor)

            enter(SyncPhase.FETCHING)
            today = today or datetime.now(UTC).date()
            days = [today - timedelta(days=offset) for offset in range(config.sync_days)]
            fetched = await self._fetch_window(adapter, connection.access_token, days, timeout, cancel_event)

            enter(SyncPhase.NORMALIZING)
            statuses = {day: day_status(metrics) for day, metrics in fetched.items()}

            enter(SyncPhase.SCORE_COMPUTATION)
            synced_at = datetime.now(UTC)
            records = [
                WearableRecord(
                    user_id=user_id,
                    provider=vendor,
                    date=day,
                    metrics=metrics,
                    derived=compute_derived(metrics),
                    last_synced=synced_at,
                    sync_status=statuses[day],
                )
                for day, metrics in fetched.items()
                if statuses[day] is not SyncStatus.FAILED
            ]

            enter(SyncPhase.PERSISTING)
            stored = [self.records.upsert(record) for record in records]
            failed_days = [day for day, status in statuses.items() if status is SyncStatus.FAILED]
            for day in failed_days:
                failed = ", ".join(fetched[day].categories_failed)
                self.records.mark_failed(user_id, vendor, day, error=f"All categories failed: {failed}", when=synced_at)

            if not stored:
                raise ProviderUnavailableError(
                    f"No data could be fetched from {vendor.display_name}",
                    provider=vendor.value,
                )

            self.connections.touch_last_sync(user_id, vendor, synced_at)
        except BaseException:
            phases.append(SyncPhase.FAILED)
            raise

        enter(SyncPhase.COMPLETED)
        stored.sort(key=lambda record: record.date, reverse=True)
        logger.info(
            "Synced %s for user %s: %d day(s) stored, %d failed, latest %s",
            vendor.value,
            user_id,
            len(stored),
            len(failed_days),
            stored[0].sync_status.value,
        )
        return SyncResult(
            user_id=user_id,
            provider=vendor,
            latest=stored[0],
            records=stored,
            days_stored=len(stored),
            synced_at=synced_at,
            phases=phases,
        )

    async def _ensure_fresh_token(self, user_id: str, vendor: VendorType) -> Connection:
        connection = self.connections.get(user_id, vendor)
        if connection is None or not connection.connected:
            raise NotConnectedError(f"{vendor.display_name} is not connected", provider=vendor.value)

        if not connection.is_expired():
            return connection

        logger.debug("Token for %s:%s expired, refreshing", vendor.value, user_id)
        try:
            return await self.token_service.refresh(user_id, vendor)
        except (OAuthError, VendorAPIError) as e:
            # Another instance may have used the same refresh token first.
            current = self.connections.get(user_id, vendor)
            if current is not None and current.connected and not current.is_expired():
                logger.info("Token for %s:%s was refreshed elsewhere, using it", vendor.value, user_id)
                return current
            logger.warning("Token refresh failed for %s:%s: %s", vendor.value, user_id, e.message)
            raise ReconnectRequiredError("Token expired. Please reconnect.", provider=vendor.value) from e

    async def _fetch_window(
        self,
        adapter: ProviderAdapter,
        access_token: str,
        days: list[date],
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> dict[date, NormalizedMetrics]:
        fetch = asyncio.ensure_future(self._fetch_days(adapter, access_token, days))
        watcher = asyncio.ensure_future(cancel_event.wait()) if cancel_event else None

        try:
            async with asyncio.timeout(timeout):
                if watcher is None:
                    return await fetch
                done, _ = await asyncio.wait({fetch, watcher}, return_when=asyncio.FIRST_COMPLETED)
                if fetch in done:
                    return fetch.result()
        except TimeoutError as e:
            raise SyncCancelledError(
                f"Sync timed out after {timeout}s",
                provider=adapter.provider.value,
            ) from e
        finally:
            for task in (fetch, watcher):
                if task is not None and not task.done():
                    task.cancel()
            await asyncio.gather(*(t for t in (fetch, watcher) if t is not None), return_exceptions=True)

        raise SyncCancelledError("Sync cancelled", provider=adapter.provider.value)

    @staticmethod
    async def _fetch_days(adapter: ProviderAdapter, access_token: str, days: list[date]) -> dict[date, NormalizedMetrics]:
        tasks = [asyncio.create_task(adapter.fetch_daily_metrics(access_token, day)) for day in days]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return dict(zip(days, results))
