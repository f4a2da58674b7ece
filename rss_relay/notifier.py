"""
Protocol definition for notification backends.

Defines the interface the poll cycle and command handlers use to reach
destinations.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """
    Protocol defining the interface for notification backends.

    The @runtime_checkable decorator allows using isinstance() checks
    against this protocol for structural typing validation.
    """

    async def test_connection(self) -> bool:
        """
        Test the connection to the notification backend.

        Returns
        -------
        bool
            True if the connection is working and messages can be sent.
        """
        ...

    async def send(self, destination: int, text: str, rich: bool = True) -> bool:
        """
        Send a message to one destination.

        Parameters
        ----------
        destination : int
            Destination chat id.
        text : str
            Message body.
        rich : bool
            Whether the body uses the backend's rich-text markup.

        Returns
        -------
        bool
            True if the message was delivered.
        """
        ...

    async def probe(self, destination: int) -> None:
        """
        Check that a destination is reachable.

        Raises
        ------
        Exception
            Backend specific error describing why it is unreachable.
        """
        ...

    async def close(self) -> None:
        """Close the notifier and release any resources."""
        ...
