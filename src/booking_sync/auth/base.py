"""Abstract base class for authentication providers."""

from abc import ABC, abstractmethod


class AuthProvider(ABC):
    """Abstract base class for authentication providers."""

    @abstractmethod
    def get_access_token(self) -> str:
        """
        Get a valid access token, refreshing it if needed.

        Returns:
            Valid access token string

        Raises:
            AuthenticationError: If no token can be obtained
        """

    @abstractmethod
    def clear_cache(self) -> None:
        """Forget any cached access token."""
