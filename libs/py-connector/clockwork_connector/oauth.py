"""OAuth 2.0 utilities: PKCE, authorization URLs, token exchange and refresh."""

import base64
import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from urllib.parse import urlencode

import httpx

from .exceptions import OAuthError, VendorAPIError
from .vendor_types import ConfiguredProvider, OAuthTokens

logger = logging.getLogger(__name__)


def generate_code_verifier() -> str:
    """PKCE code verifier: 32 random bytes, base64url without padding (43 chars)."""
    return secrets.token_urlsafe(32)


def code_challenge_s256(verifier: str) -> str:
    """PKCE S256 challenge for a verifier."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


class OAuthHandler:
    """
    Handles the OAuth 2.0 authorization code flow for one provider.

    Supports:
    - Authorization URL generation (with optional PKCE challenge)
    - Code exchange for tokens (client secret or PKCE verifier)
    - Token refresh
    - Token revocation
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_url: str,
        token_url: str,
        revoke_url: str | None = None,
        token_auth: Literal["basic", "body"] = "basic",
        provider: str | None = None,
        timeout: float = 30.0,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_url = auth_url
        self.token_url = token_url
        self.revoke_url = revoke_url
        self.token_auth = token_auth
        self.provider = provider

        self.http_client = httpx.AsyncClient(timeout=timeout)

    @classmethod
    def for_provider(cls, config: ConfiguredProvider, timeout: float = 30.0) -> "OAuthHandler":
        return cls(
            client_id=config.client_id,
            client_secret=config.client_secret,
            auth_url=config.auth_url,
            token_url=config.token_url,
            revoke_url=config.revoke_url,
            token_auth=config.token_auth,
            provider=config.name.value,
            timeout=timeout,
        )

    def build_authorization_url(
        self,
        redirect_uri: str,
        scope: str,
        state: str,
        code_challenge: str | None = None,
        **extra_params: Any,
    ) -> str:
        """
        Build OAuth authorization URL.

        Args:
            redirect_uri: Callback URL
            scope: Space-separated OAuth scopes
            state: CSRF state value
            code_challenge: PKCE S256 challenge, if the provider uses PKCE
            **extra_params: Additional provider-specific parameters

        Returns:
            Full authorization URL
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
            **extra_params,
        }
        if scope:
            params["scope"] = scope
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        return f"{self.auth_url}?{urlencode(params)}"

    def _token_request(self, data: dict[str, str]) -> tuple[dict[str, str], dict[str, str]]:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        if self.token_auth == "basic":
            credentials = f"{self.client_id}:{self.client_secret}".encode()
            headers["Authorization"] = f"Basic {base64.b64encode(credentials).decode('ascii')}"
        else:
            data = {**data, "client_id": self.client_id, "client_secret": self.client_secret}
        return data, headers

    async def _post_token(self, data: dict[str, str], action: str) -> OAuthTokens:
        data, headers = self._token_request(data)

        try:
            response = await self.http_client.post(self.token_url, data=data, headers=headers)
        except httpx.RequestError as e:
            raise VendorAPIError(f"Network error during token {action}: {e}", provider=self.provider) from e

        if response.status_code != 200:
            try:
                error_data = response.json() if response.text else {}
            except ValueError:
                error_data = {}
            error_msg = error_data.get("error_description") or error_data.get("error") or response.text
            logger.warning("Token %s failed for %s: HTTP %s", action, self.provider, response.status_code)
            raise OAuthError(f"Token {action} failed: {error_msg}", provider=self.provider)

        return self._parse_token_response(response.json())

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> OAuthTokens:
        """
        Exchange authorization code for access token.

        Args:
            code: Authorization code from provider
            redirect_uri: Must match the one used in authorization
            code_verifier: PKCE verifier stored with the OAuth state

        Returns:
            OAuthTokens with access and refresh tokens

        Raises:
            OAuthError: If the token endpoint rejects the request
            VendorAPIError: On network failure
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            data["code_verifier"] = code_verifier
            data["client_id"] = self.client_id

        return await self._post_token(data, "exchange")

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        """
        Refresh an expired access token.

        Args:
            refresh_token: Refresh token from previous exchange

        Returns:
            OAuthTokens with new access token. ``refresh_token`` is None when
            the provider did not rotate it.

        Raises:
            OAuthError: If refresh fails
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return await self._post_token(data, "refresh")

    async def revoke_token(self, token: str, token_type: str = "access_token") -> bool:
        """
        Revoke an access or refresh token.

        Returns:
            True if revocation succeeded or the provider has no revoke endpoint
        """
        if not self.revoke_url:
            return True

        data, headers = self._token_request({"token": token, "token_type_hint": token_type})

        try:
            response = await self.http_client.post(self.revoke_url, data=data, headers=headers)
        except httpx.RequestError as e:
            raise VendorAPIError(f"Network error during token revocation: {e}", provider=self.provider) from e

        # RFC 7009: successful revocations return 200
        return response.status_code == 200

    def _parse_token_response(self, data: dict[str, Any]) -> OAuthTokens:
        """
        Parse provider token response into OAuthTokens.

        Args:
            data: Token response from provider

        Returns:
            OAuthTokens object
        """
        access_token = data.get("access_token")
        if not access_token:
            raise OAuthError("Missing access_token in response", provider=self.provider)

        expires_in = data.get("expires_in")
        expires_at = None
        if expires_in is not None:
            expires_in = int(expires_in)
            expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)

        scope = data.get("scope") or ""
        scopes = scope.split() if isinstance(scope, str) else list(scope)

        # Fitbit: user_id, Polar: x_user_id
        external_user_id = data.get("user_id") or data.get("x_user_id")

        return OAuthTokens(
            access_token=access_token,
            refresh_token=data.get("refresh_token"),
            expires_in=expires_in,
            expires_at=expires_at,
            token_type=data.get("token_type", "Bearer"),
            scopes=scopes,
            external_user_id=str(external_user_id) if external_user_id is not None else None,
        )

    async def close(self) -> None:
        """Close HTTP client."""
        await self.http_client.aclose()

    async def __aenter__(self) -> "OAuthHandler":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Context manager exit."""
        await self.close()
