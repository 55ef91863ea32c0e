"""
Short-lived OAuth state storage.

Each pending authorization is stored under its CSRF ``state`` value with a
TTL (600s by default) and can be consumed exactly once.

Usage:
    states = EphemeralStateStore(DynamoKeyValueStore("clockwork_cache"))

    states.store(OAuthState(state=new_state(), user_id="user123", provider=VendorType.FITBIT))

    # In the callback; None means missing, expired or already used
    pending = states.consume(state)
"""

import logging
import secrets

from .exceptions import StoreError
from .kv import KeyValueStore
from .vendor_types import OAuthState

logger = logging.getLogger(__name__)

STATE_PREFIX = "oauth_state:"
DEFAULT_STATE_TTL = 600


def new_state() -> str:
    """256-bit random state value, hex encoded."""
    return secrets.token_hex(32)


class EphemeralStateStore:
    """
    Consume-once OAuth state store.

    If a fallback store is given, it is used only when the primary store
    raises ``StoreError``. The fallback is normally a MemoryKeyValueStore and
    is therefore single-instance only: a callback routed to another instance
    will not find the state.
    """

    def __init__(
        self,
        primary: KeyValueStore,
        fallback: KeyValueStore | None = None,
        ttl: int = DEFAULT_STATE_TTL,
    ):
        self.primary = primary
        self.fallback = fallback
        self.ttl = ttl

    @staticmethod
    def _key(state: str) -> str:
        return f"{STATE_PREFIX}{state}"

    def store(self, oauth_state: OAuthState) -> None:
        """
        Persist a pending authorization.

        Raises:
            StoreError: If the primary store fails and no fallback is configured
        """
        key = self._key(oauth_state.state)
        value = oauth_state.model_dump(mode="json")

        try:
            self.primary.put(key, value, ttl=self.ttl)
        except StoreError as e:
            if self.fallback is None:
                raise
            logger.warning(
                "State store unavailable (%s); using in-process fallback (single-instance only)",
                e.message,
            )
            self.fallback.put(key, value, ttl=self.ttl)

        logger.debug("Stored OAuth state for %s user %s", oauth_state.provider.value, oauth_state.user_id)

    def consume(self, state: str) -> OAuthState | None:
        """
        Read and delete a pending authorization.

        Returns:
            The OAuthState, or None if it is unknown, expired or already consumed
        """
        if not state:
            return None

        key = self._key(state)
        value = None
        try:
            value = self.primary.pop(key)
        except StoreError as e:
            if self.fallback is None:
                raise
            logger.warning(
                "State store unavailable (%s); checking in-process fallback (single-instance only)",
                e.message,
            )

        if value is None and self.fallback is not None:
            value = self.fallback.pop(key)

        if value is None:
            logger.debug("OAuth state not found or already consumed")
            return None

        oauth_state = OAuthState.model_validate(value)
        logger.debug("Consumed OAuth state for %s user %s", oauth_state.provider.value, oauth_state.user_id)
        return oauth_state
