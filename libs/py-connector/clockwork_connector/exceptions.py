"""Custom exceptions for the wearable connector library."""


class ConnectorError(Exception):
    """Base exception for all connector errors."""

    http_status: int = 500

    def __init__(self, message: str, provider: str | None = None, trace_id: str | None = None):
        self.message = message
        self.provider = provider
        self.trace_id = trace_id
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.__class__.__name__.replace("Error", "").lower()

    def to_dict(self) -> dict:
        """Convert exception to API error response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "provider": self.provider,
                "trace_id": self.trace_id,
            }
        }


class ConfigurationError(ConnectorError):
    """Provider credentials are missing."""


class UnsupportedProviderError(ConfigurationError):
    """Unknown provider, or one that does not speak OAuth 2.0."""

    http_status = 400


class InvalidStateError(ConnectorError):
    """OAuth state missing, expired, already consumed, or issued for another provider."""

    http_status = 400


class OAuthError(ConnectorError):
    """Token endpoint rejected the request (exchange failed, invalid grant, etc.)."""

    http_status = 502


class NoRefreshTokenError(OAuthError):
    """No connection, or a connection without a refresh token."""

    http_status = 401


class NotConnectedError(ConnectorError):
    """User has no live connection for the provider."""

    http_status = 404


class RateLimitedError(ConnectorError):
    """Internal per-user quota exceeded. No provider call was made."""

    http_status = 429

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        trace_id: str | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, provider, trace_id)
        self.retry_after = retry_after


class ReconnectRequiredError(ConnectorError):
    """Refresh failed or provider answered 401; the user must authorize again."""

    http_status = 401


class ProviderUnavailableError(ConnectorError):
    """Provider 5xx or timeout after retries, or a provider-side 429."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        trace_id: str | None = None,
        status_code: int | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, provider, trace_id)
        self.status_code = status_code
        self.retry_after = retry_after


class VendorAPIError(ConnectorError):
    """Provider returned a 4xx other than 401/429."""

    http_status = 502

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        trace_id: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, provider, trace_id)
        self.status_code = status_code


class ProviderNotImplementedError(ConnectorError, NotImplementedError):
    """Adapter for this provider is not available yet."""

    http_status = 501


class SyncCancelledError(ConnectorError):
    """Sync aborted by caller deadline or cancellation signal."""

    http_status = 408


class StoreError(ConnectorError):
    """Key-value store or table backend failure."""
