"""Google OAuth access tokens from a stored refresh token."""

import functools
import logging
import threading
from typing import Optional

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from ..config import GoogleConfig
from ..utils.exceptions import AuthenticationError
from .base import AuthProvider

logger = logging.getLogger(__name__)


class GoogleAuthProvider(AuthProvider):
    """Exchange a barber's refresh token for short-lived access tokens.

    The refresh token itself comes from the one-time consent flow, which
    lives outside this package. google-auth tracks expiry and refreshes
    shortly before it.
    """

    def __init__(
        self,
        config: GoogleConfig,
        refresh_token: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Google authentication provider.

        Args:
            config: Google OAuth client configuration
            refresh_token: Long-lived refresh token for one calendar owner
            timeout: HTTP timeout in seconds for the token endpoint
            session: Optional requests session for the token endpoint

        Raises:
            AuthenticationError: If required configuration is missing
        """
        if not config.client_id or not config.client_secret:
            raise AuthenticationError(
                "GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET must be configured"
            )
        if not refresh_token:
            raise AuthenticationError("A refresh token is required")

        self.config = config
        self.timeout = timeout
        self.credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=config.token_url,
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
        self._request = functools.partial(Request(session), timeout=timeout)
        self._lock = threading.Lock()

    def get_access_token(self) -> str:
        with self._lock:
            if not self.credentials.valid:
                logger.info("Refreshing Google access token")
                try:
                    self.credentials.refresh(self._request)
                except GoogleAuthError as e:
                    raise AuthenticationError(f"Token refresh failed: {e}") from e
            return self.credentials.token

    def clear_cache(self) -> None:
        with self._lock:
            self.credentials.token = None
