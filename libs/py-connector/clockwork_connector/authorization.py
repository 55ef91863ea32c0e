"""
Authorization start, code exchange, refresh and disconnect.

Flow:
    1. AuthorizationManager.begin() stores an OAuthState (with the PKCE
       verifier when the provider uses PKCE) and returns the provider URL.
    2. The provider redirects back with ``code`` and ``state``.
    3. TokenService.exchange() consumes the state, exchanges the code and
       writes the Connection. Nothing is written unless every step succeeds.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from .connections import ConnectionStore
from .exceptions import (
    ConfigurationError,
    ConnectorError,
    InvalidStateError,
    NoRefreshTokenError,
    UnsupportedProviderError,
)
from .oauth import OAuthHandler, code_challenge_s256, generate_code_verifier
from .state_store import EphemeralStateStore, new_state
from .vendor_types import (
    ConfiguredProvider,
    Connection,
    OAuthState,
    ProviderConfig,
    VendorType,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600

PostConnectHook = Callable[[Connection], Awaitable[None]]


def parse_provider(name: VendorType | str) -> VendorType:
    """
    Raises:
        UnsupportedProviderError: If the name is not a known provider
    """
    try:
        return VendorType(name)
    except ValueError as e:
        raise UnsupportedProviderError(f"Unsupported provider: {name}", provider=str(name)) from e


def require_configured(providers: dict[VendorType, ProviderConfig], name: VendorType | str) -> ConfiguredProvider:
    """
    Resolve a provider that can run the OAuth 2.0 flow.

    Raises:
        UnsupportedProviderError: Unknown provider or no OAuth 2.0 support
        ConfigurationError: Credentials missing
    """
    vendor = parse_provider(name)
    config = providers.get(vendor)
    if config is None:
        raise UnsupportedProviderError(f"Unsupported provider: {vendor.value}", provider=vendor.value)
    if not config.supports_oauth2:
        raise UnsupportedProviderError(
            f"{vendor.display_name} does not support OAuth 2.0",
            provider=vendor.value,
        )
    if not isinstance(config, ConfiguredProvider):
        raise ConfigurationError(
            f"{vendor.display_name} is not configured (missing {', '.join(config.missing)})",
            provider=vendor.value,
        )
    return config


class OAuthHandlers:
    """One lazily created OAuthHandler per provider."""

    def __init__(self, providers: dict[VendorType, ProviderConfig], timeout: float = 30.0):
        self.providers = providers
        self.timeout = timeout
        self._handlers: dict[VendorType, OAuthHandler] = {}

    def get(self, name: VendorType | str) -> OAuthHandler:
        config = require_configured(self.providers, name)
        handler = self._handlers.get(config.name)
        if handler is None:
            handler = OAuthHandler.for_provider(config, timeout=self.timeout)
            self._handlers[config.name] = handler
        return handler

    async def aclose(self) -> None:
        for handler in self._handlers.values():
            await handler.close()
        self._handlers.clear()


@dataclass
class AuthorizationRequest:
    """Result of starting an authorization."""

    provider: VendorType
    auth_url: str
    state: str


class AuthorizationManager:
    """Starts OAuth authorizations. Never touches the Connection Store."""

    def __init__(
        self,
        providers: dict[VendorType, ProviderConfig],
        state_store: EphemeralStateStore,
        handlers: OAuthHandlers,
    ):
        self.providers = providers
        self.state_store = state_store
        self.handlers = handlers

    def begin(self, user_id: str, provider: VendorType | str) -> AuthorizationRequest:
        """
        Create a pending authorization and its provider URL.

        Args:
            user_id: User starting the connection
            provider: Provider name

        Returns:
            AuthorizationRequest with the URL to send the user to

        Raises:
            UnsupportedProviderError: Unknown provider or no OAuth 2.0 support
            ConfigurationError: Provider credentials missing
            StoreError: State could not be stored
        """
        config = require_configured(self.providers, provider)
        handler = self.handlers.get(config.name)

        state = new_state()
        code_verifier = generate_code_verifier() if config.uses_pkce else None

        self.state_store.store(
            OAuthState(
                state=state,
                user_id=user_id,
                provider=config.name,
                code_verifier=code_verifier,
            )
        )

        auth_url = handler.build_authorization_url(
            redirect_uri=config.redirect_uri,
            scope=config.scope,
            state=state,
            code_challenge=code_challenge_s256(code_verifier) if code_verifier else None,
            **config.extra_auth_params,
        )
        logger.info("Authorization started for %s user %s", config.name.value, user_id)
        return AuthorizationRequest(provider=config.name, auth_url=auth_url, state=state)


class TokenService:
    """Code exchange, token refresh and disconnect."""

    def __init__(
        self,
        providers: dict[VendorType, ProviderConfig],
        state_store: EphemeralStateStore,
        connections: ConnectionStore,
        handlers: OAuthHandlers,
        post_connect_hooks: dict[VendorType, PostConnectHook] | None = None,
    ):
        self.providers = providers
        self.state_store = state_store
        self.connections = connections
        self.handlers = handlers
        self.post_connect_hooks = post_connect_hooks or {}
        self._refreshing: dict[tuple[str, VendorType], asyncio.Future[Connection]] = {}

    async def exchange(self, provider: VendorType | str, code: str, state: str) -> Connection:
        """
        Complete an authorization.

        The state is consumed first, so a replayed callback fails even if the
        exchange itself would have failed the first time.

        Raises:
            InvalidStateError: State unknown, expired, reused, or for another provider
            OAuthError: Token endpoint rejected the code
            VendorAPIError: Network failure talking to the token endpoint
        """
        vendor = parse_provider(provider)

        pending = self.state_store.consume(state)
        if pending is None:
            raise InvalidStateError("Invalid or expired state", provider=vendor.value)
        if pending.provider != vendor:
            raise InvalidStateError(
                f"State was issued for {pending.provider.value}, not {vendor.value}",
                provider=vendor.value,
            )

        config = require_configured(self.providers, vendor)
        handler = self.handlers.get(vendor)
        tokens = await handler.exchange_code(
            code=code,
            redirect_uri=config.redirect_uri,
            code_verifier=pending.code_verifier,
        )

        now = datetime.now(UTC)
        connection = self.connections.save(
            Connection(
                user_id=pending.user_id,
                provider=vendor,
                connected=True,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
                expires_at=tokens.expires_at,
                external_user_id=tokens.external_user_id,
                scopes=tokens.scopes or config.scope.split(),
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Connected %s for user %s", vendor.value, pending.user_id)

        hook = self.post_connect_hooks.get(vendor)
        if hook is not None:
            try:
                await hook(connection)
            except ConnectorError as e:
                logger.warning("Post-connect step failed for %s user %s: %s", vendor.value, pending.user_id, e.message)

        return connection

    async def refresh(self, user_id: str, provider: VendorType | str) -> Connection:
        """
        Refresh the access token of an existing connection.

        The previous refresh token is kept when the provider does not send a
        new one. The stored connection is only replaced after a successful
        response. Concurrent calls for the same (user, provider) share one
        request to the token endpoint; Fitbit accepts each refresh token once.

        Raises:
            NoRefreshTokenError: No connection, or it has no refresh token
            OAuthError: Token endpoint rejected the refresh
        """
        vendor = parse_provider(provider)
        key = (user_id, vendor)

        task = self._refreshing.get(key)
        if task is None:
            task = asyncio.ensure_future(self._refresh(user_id, vendor))
            self._refreshing[key] = task

            def forget(done: asyncio.Future) -> None:
                if self._refreshing.get(key) is done:
                    del self._refreshing[key]

            task.add_done_callback(forget)
        else:
            logger.debug("Joining in-flight %s refresh for user %s", vendor.value, user_id)

        return await asyncio.shield(task)

    async def _refresh(self, user_id: str, vendor: VendorType) -> Connection:
        connection = self.connections.get(user_id, vendor)
        if connection is None or not connection.refresh_token:
            raise NoRefreshTokenError("No refresh token available", provider=vendor.value)

        handler = self.handlers.get(vendor)
        tokens = await handler.refresh_token(connection.refresh_token)

        now = datetime.now(UTC)
        refreshed = connection.model_copy(
            update={
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token or connection.refresh_token,
                "expires_at": tokens.expires_at or now + timedelta(seconds=DEFAULT_EXPIRES_IN),
                "scopes": tokens.scopes or connection.scopes,
                "connected": True,
            }
        )
        saved = self.connections.save(refreshed)
        logger.info("Refreshed %s token for user %s", vendor.value, user_id)
        return saved

    async def disconnect(self, user_id: str, provider: VendorType | str) -> bool:
        """
        Remove a connection, revoking the token at the provider when possible.

        Returns:
            True if a connection was removed
        """
        vendor = parse_provider(provider)
        connection = self.connections.get(user_id, vendor)
        config = self.providers.get(vendor)

        if connection is not None and isinstance(config, ConfiguredProvider) and config.revoke_url:
            token = connection.refresh_token or connection.access_token
            token_type = "refresh_token" if connection.refresh_token else "access_token"
            try:
                revoked = await self.handlers.get(vendor).revoke_token(token, token_type)
            except ConnectorError as e:
                logger.warning("Token revocation failed for %s user %s: %s", vendor.value, user_id, e.message)
            else:
                if not revoked:
                    logger.warning("Provider refused token revocation for %s user %s", vendor.value, user_id)

        removed = self.connections.delete(user_id, vendor)
        logger.info("Disconnected %s for user %s (removed=%s)", vendor.value, user_id, removed)
        return removed
