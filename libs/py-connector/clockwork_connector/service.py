"""Service facade wiring stores, OAuth, adapters and the sync orchestrator."""

import asyncio
import logging
from datetime import UTC, date, datetime, timedelta
from typing import Any

import httpx

from clockwork_scores import NormalizedMetrics, compute_derived

from .adapters import PolarAdapter, ProviderAdapter, build_adapter
from .authorization import (
    AuthorizationManager,
    AuthorizationRequest,
    OAuthHandlers,
    TokenService,
    parse_provider,
)
from .config import Settings
from .connections import ConnectionStore
from .http_client import RetryingHttpClient, Sleep
from .insights import DEFAULT_INSIGHT_DAYS, summarize
from .kv import DynamoKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .rate_limit import RateLimiter
from .records import DEFAULT_QUERY_LIMIT, RecordStore
from .state_store import EphemeralStateStore
from .sync import SyncOrchestrator, SyncResult
from .vendor_types import ConfiguredProvider, Connection, SyncStatus, VendorType, WearableRecord

logger = logging.getLogger(__name__)

DEFAULT_READ_DAYS = 2


class WearableService:
    """
    Entry point used by the API server and the CLI.

    Provides:
    - Authorization start and callback completion
    - Sync with deadline / cancellation
    - Record reads, manual entries and period insights
    - Connection management
    """

    def __init__(
        self,
        settings: Settings,
        cache: KeyValueStore,
        connections: ConnectionStore,
        records: RecordStore,
        fallback_cache: KeyValueStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep | None = None,
    ):
        self.settings = settings
        self.providers = settings.providers
        self.cache = cache
        self.connections = connections
        self.records = records

        self.state_store = EphemeralStateStore(cache, fallback=fallback_cache, ttl=settings.oauth_state_ttl)

        self.rate_limiter = RateLimiter(cache)
        for vendor, config in self.providers.items():
            self.rate_limiter.configure(vendor, config.rate_limit)

        self.handlers = OAuthHandlers(self.providers, timeout=settings.http_timeout)

        self.http_clients: dict[VendorType, RetryingHttpClient] = {}
        self.adapters = {}
        for vendor, config in self.providers.items():
            if not isinstance(config, ConfiguredProvider):
                continue
            http = RetryingHttpClient(
                provider=vendor.value,
                timeout=settings.http_timeout,
                max_retries=settings.http_max_retries,
                sleep=sleep,
                transport=transport,
            )
            self.http_clients[vendor] = http
            self.adapters[vendor] = build_adapter(config, http)

        hooks = {}
        polar = self.adapters.get(VendorType.POLAR)
        if isinstance(polar, PolarAdapter):
            hooks[VendorType.POLAR] = polar.register_member

        self.authorization = AuthorizationManager(self.providers, self.state_store, self.handlers)
        self.tokens = TokenService(
            self.providers,
            self.state_store,
            connections,
            self.handlers,
            post_connect_hooks=hooks,
        )
        self.orchestrator = SyncOrchestrator(
            self.providers,
            connections,
            records,
            self.rate_limiter,
            self.tokens,
            self.adapters,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "WearableService":
        """
        Build the service with DynamoDB stores, or in-process ones in local mode.

        Local mode and the memory fallback are single-instance only.
        """
        settings = settings or Settings.from_env()

        if settings.local_mode:
            logger.warning("LOCAL_MODE enabled: in-process stores, single-instance only")
            cache: KeyValueStore = MemoryKeyValueStore()
        else:
            cache = DynamoKeyValueStore(settings.cache_table, region_name=settings.aws_region)

        fallback = None
        if settings.allow_memory_fallback and not settings.local_mode:
            logger.warning("ALLOW_MEMORY_FALLBACK enabled: OAuth state may fall back to process memory (single-instance only)")
            fallback = MemoryKeyValueStore()

        connections = ConnectionStore(
            settings.connections_table,
            kms_key_id=settings.kms_key_id,
            region_name=settings.aws_region,
            cache=cache,
            cache_ttl=settings.token_cache_ttl,
            local_mode=settings.local_mode,
        )
        records = RecordStore(
            settings.records_table,
            region_name=settings.aws_region,
            local_mode=settings.local_mode,
        )
        return cls(settings, cache, connections, records, fallback_cache=fallback)

    # ============================================================================
    # OAuth
    # ============================================================================

    def begin_authorization(self, user_id: str, provider: str) -> AuthorizationRequest:
        return self.authorization.begin(user_id, provider)

    async def complete_authorization(self, provider: str, code: str, state: str) -> Connection:
        return await self.tokens.exchange(provider, code, state)

    async def refresh(self, user_id: str, provider: str) -> Connection:
        return await self.tokens.refresh(user_id, provider)

    async def disconnect(self, user_id: str, provider: str) -> bool:
        return await self.tokens.disconnect(user_id, provider)

    # ============================================================================
    # Sync and reads
    # ============================================================================

    async def sync(
        self,
        user_id: str,
        provider: str,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> SyncResult:
        return await self.orchestrator.sync(user_id, provider, timeout=timeout, cancel_event=cancel_event)

    def get_records(
        self,
        user_id: str,
        start_date: date | None = None,
        end_date: date | None = None,
        provider: str | None = None,
        days: int | None = None,
        limit: int = DEFAULT_QUERY_LIMIT,
        today: date | None = None,
    ) -> list[WearableRecord]:
        """
        Read stored records, newest first.

        With no start or end the window is the last ``days`` days including
        today (two by default).
        """
        today = today or datetime.now(UTC).date()
        vendor = parse_provider(provider) if provider else None

        if start_date is None and end_date is None:
            window = days if days is not None else DEFAULT_READ_DAYS
            start_date = today - timedelta(days=max(window, 1) - 1)

        return self.records.query(user_id, start=start_date, end=end_date, provider=vendor, limit=limit)

    def latest_record(self, user_id: str, provider: str | None = None) -> WearableRecord | None:
        """Latest complete record for one provider, or across connected providers."""
        if provider:
            return self.records.latest_complete(user_id, parse_provider(provider))

        candidates = [
            record
            for connection in self.connections.list(user_id)
            if (record := self.records.latest_complete(user_id, connection.provider)) is not None
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: (record.date, record.last_synced))

    def manual_entry(self, user_id: str, metrics: NormalizedMetrics, day: date | None = None) -> WearableRecord:
        """
        Store metrics entered by hand for one day under the ``manual`` provider.

        Scores are computed the same way as for synced days. A second entry
        for the same day replaces the first.
        """
        record = WearableRecord(
            user_id=user_id,
            provider=VendorType.MANUAL,
            date=day or datetime.now(UTC).date(),
            metrics=metrics,
            derived=compute_derived(metrics),
            sync_status=SyncStatus.SUCCESS,
        )
        stored = self.records.upsert(record)
        logger.info("Stored manual entry for user %s on %s", user_id, stored.date)
        return stored

    def insights(
        self,
        user_id: str,
        days: int = DEFAULT_INSIGHT_DAYS,
        today: date | None = None,
    ) -> dict[str, Any] | None:
        """Averages and trends over the last ``days`` days, or None without data."""
        days = max(days, 1)
        today = today or datetime.now(UTC).date()
        records = self.records.query(
            user_id,
            start=today - timedelta(days=days - 1),
            end=today,
            limit=days * len(VendorType),
        )
        return summarize(records, days)

    def rate_limit_status(self, user_id: str, provider: str) -> dict[str, Any]:
        """Remaining sync quota for one (user, provider); empty without a quota."""
        return self.rate_limiter.get_remaining(parse_provider(provider), user_id)

    def reset_rate_limit(self, user_id: str, provider: str) -> None:
        vendor = parse_provider(provider)
        self.rate_limiter.reset(vendor, user_id)
        logger.info("Reset %s rate limit for user %s", vendor.value, user_id)

    def list_connections(self, user_id: str) -> list[Connection]:
        return self.connections.list(user_id)

    def provider_status(self) -> list[dict[str, Any]]:
        """Configuration overview per provider, without secrets."""
        status = []
        for vendor, config in self.providers.items():
            status.append(
                {
                    "provider": vendor.value,
                    "name": vendor.display_name,
                    "configured": config.configured,
                    "oauth2": config.supports_oauth2,
                    "pkce": getattr(config, "uses_pkce", False),
                    "implemented": isinstance(self.adapters.get(vendor), ProviderAdapter),
                    "rate_limit": f"{config.rate_limit.requests_per_window}/{config.rate_limit.window_seconds}s",
                    "missing": getattr(config, "missing", []),
                }
            )
        return status

    async def aclose(self) -> None:
        await self.handlers.aclose()
        for http in self.http_clients.values():
            await http.close()
