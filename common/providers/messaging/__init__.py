from .constants import QueueName
from .interface import MessageQueueInterface
from .rabbitmq_async import RabbitMQClient
from .factory import get_message_queue

__all__ = ["QueueName", "MessageQueueInterface", "RabbitMQClient", "get_message_queue"]
