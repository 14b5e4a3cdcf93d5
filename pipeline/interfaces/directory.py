"""
Directory Interface - Camera Account Lookup.

Defines the contract for resolving an account's cameras to network addresses.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class Device:
    """
    A camera registered to the account.

    Attributes:
        name: Display name of the camera.
        address: Local network address (IP) of the camera.
    """

    name: str
    address: str


class DirectoryError(RuntimeError):
    """Raised when the directory service returns an unusable response."""


class InvalidCredentialsError(DirectoryError):
    """Raised when the account or password is rejected."""


class DirectoryInterface(ABC):
    """Interface for the account/device directory service."""

    @abstractmethod
    def authenticate(self) -> str:
        """
        Logs in with the configured credentials.

        Returns:
            The session id.

        Raises:
            InvalidCredentialsError: If the credentials are rejected.
            DirectoryError: If the response carries no session.
        """
        pass

    @abstractmethod
    def list_devices(self) -> list[Device]:
        """
        Lists the cameras on the account.

        Raises:
            DirectoryError: If a camera has no known address.
        """
        pass
