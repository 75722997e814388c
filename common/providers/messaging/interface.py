from abc import ABC, abstractmethod
from typing import Callable, Dict, Any, Optional


class MessageQueueInterface(ABC):
    @abstractmethod
    async def connect(self) -> bool:
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass

    @abstractmethod
    async def publish(
        self,
        queue: str,
        message: Dict[str, Any],
        message_id: Optional[str] = None,
    ) -> bool:
        """Publish one message. message_id carries the producer's idempotency key."""
        pass

    @abstractmethod
    async def consume(
        self,
        queue: str,
        callback: Callable,
        auto_ack: bool = True,
        prefetch_count: int = 1,
    ) -> None:
        pass

    @abstractmethod
    async def declare_queue(
        self, queue: str, durable: bool = True, dlq_enabled: bool = True
    ) -> bool:
        pass
