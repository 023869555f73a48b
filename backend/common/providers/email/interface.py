from abc import ABC, abstractmethod


class EmailInterface(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> bool:
        """
        Send a plain-text email.

        Returns:
            True if the message was handed to the transport
        """
        pass
