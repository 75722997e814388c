from typing import Callable, Dict, Any, Optional
import json
import asyncio
import aio_pika
from aio_pika import connect_robust, Message
from urllib.parse import quote

from opentelemetry import trace
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from common.core.config import settings
from common.core.exceptions import is_retryable
from .interface import MessageQueueInterface
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)

tracer = trace.get_tracer(__name__)
propagator = TraceContextTextMapPropagator()


class QueueConfig:
    DLQ_MESSAGE_TTL_MS = 86400000  # 24 hours
    DLQ_MAX_LENGTH = 10000
    DLX_SUFFIX = ".dlx"
    DLQ_SUFFIX = ".dlq"


class RabbitMQClient(MessageQueueInterface):
    """
    aio-pika client for the billing job queues.

    Delivery is at-least-once: publishes are persistent and carry the
    producer's idempotency key as the AMQP message_id. A message whose
    handler raises is requeued once, then dead-lettered to ``<queue>.dlq``.
    Non-retryable errors (bad payloads, business rule violations) are
    dead-lettered on the first failure.
    """

    def __init__(self):
        self.connection = None
        self.channel = None
        self.host = settings.rabbitmq_host
        self.port = settings.rabbitmq_port
        self.username = settings.rabbitmq_username
        self.password = settings.rabbitmq_password
        self.vhost = settings.rabbitmq_vhost
        self._declared_queues: set[str] = set()

    async def _ensure_channel(self) -> None:
        if not self.channel or self.channel.is_closed:
            await self.connect()

    async def _setup_dead_letter_queue(self, queue_name: str) -> Dict[str, str]:
        """Set up dead letter exchange and queue for a given queue."""
        dlx_name = f"{queue_name}{QueueConfig.DLX_SUFFIX}"
        dlq_name = f"{queue_name}{QueueConfig.DLQ_SUFFIX}"

        await self.channel.declare_exchange(
            name=dlx_name, type=aio_pika.ExchangeType.DIRECT, durable=True
        )
        dlq = await self.channel.declare_queue(
            dlq_name,
            durable=True,
            arguments={
                "x-message-ttl": QueueConfig.DLQ_MESSAGE_TTL_MS,
                "x-max-length": QueueConfig.DLQ_MAX_LENGTH,
            },
        )
        await dlq.bind(dlx_name, routing_key=queue_name)
        logger.info(f"Declared dead letter queue {dlq_name} via {dlx_name}")

        return {
            "x-dead-letter-exchange": dlx_name,
            "x-dead-letter-routing-key": queue_name,
        }

    async def connect(self) -> bool:
        try:
            url = f"amqp://{quote(self.username)}:{quote(self.password)}@{self.host}:{self.port}/{self.vhost}"
            # Robust connection reconnects on its own
            self.connection = await connect_robust(url)
            self.channel = await self.connection.channel(publisher_confirms=True)
            logger.info("Connected to RabbitMQ with publisher confirms enabled")
            return True
        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            return False

    async def disconnect(self) -> None:
        try:
            if self.channel and not self.channel.is_closed:
                await self.channel.close()
            if self.connection and not self.connection.is_closed:
                await self.connection.close()
            self._declared_queues.clear()
            logger.info("Disconnected from RabbitMQ")
        except Exception as e:
            logger.error(f"Error disconnecting from RabbitMQ: {e}")

    async def publish(
        self,
        queue: str,
        message: Dict[str, Any],
        message_id: Optional[str] = None,
    ) -> bool:
        try:
            await self._ensure_channel()
            await self.declare_queue(queue, durable=True, dlq_enabled=True)

            headers = {}
            propagator.inject(headers)

            msg = Message(
                body=json.dumps(message, default=str).encode(),
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                content_type="application/json",
                message_id=message_id,
                headers=headers,
            )
            await self.channel.default_exchange.publish(
                msg, routing_key=queue, mandatory=True
            )

            logger.info(
                f"Published message to queue {queue}",
                extra={"queue": queue, "message_id": message_id},
            )
            return True
        except Exception as e:
            logger.error(
                f"Failed to publish message to {queue}: {e}",
                extra={"queue": queue, "message_id": message_id},
            )
            return False

    async def consume(
        self,
        queue: str,
        callback: Callable,
        auto_ack: bool = True,
        prefetch_count: int = 1,
    ) -> None:
        await self._ensure_channel()
        await self.channel.set_qos(prefetch_count=prefetch_count)

        active_tasks: set = set()
        semaphore = asyncio.Semaphore(prefetch_count)

        await self.declare_queue(queue, durable=True, dlq_enabled=True)
        queue_obj = await self.channel.get_queue(queue)

        async def process_message(message: aio_pika.IncomingMessage):
            task = asyncio.create_task(_handle_message(message))
            active_tasks.add(task)
            task.add_done_callback(active_tasks.discard)

        async def _handle_message(message: aio_pika.IncomingMessage):
            async with semaphore:
                is_redelivered = bool(getattr(message, "redelivered", False))
                ctx = propagator.extract(message.headers or {})
                with tracer.start_as_current_span(
                    "consume_message", context=ctx
                ) as span:
                    span.set_attribute("messaging.system", "rabbitmq")
                    span.set_attribute("messaging.source", queue)
                    span.set_attribute("messaging.redelivered", is_redelivered)
                    if message.message_id:
                        span.set_attribute("messaging.message_id", message.message_id)
                    log_extra = {
                        "queue": queue,
                        "message_id": message.message_id,
                        "redelivered": is_redelivered,
                    }
                    try:
                        msg_data = json.loads(message.body.decode())
                    except json.JSONDecodeError as e:
                        logger.error(
                            f"Failed to decode message body as JSON: {e}",
                            extra=log_extra,
                        )
                        if not auto_ack:
                            await message.reject(requeue=False)
                        return

                    try:
                        await callback(msg_data)
                        if not auto_ack:
                            await message.ack()
                    except Exception as e:
                        span.record_exception(e)
                        span.set_status(trace.Status(trace.StatusCode.ERROR))
                        logger.error(
                            f"Error processing message from {queue}: {e}",
                            exc_info=True,
                            extra=log_extra,
                        )
                        if not auto_ack:
                            # Retry once, then dead-letter; bad input goes straight to the DLQ
                            await message.reject(
                                requeue=not is_redelivered and is_retryable(e)
                            )

        logger.info(
            f"Starting to consume from queue {queue} with prefetch={prefetch_count}, auto_ack={auto_ack}"
        )
        await queue_obj.consume(process_message, no_ack=auto_ack)

        try:
            await asyncio.Future()  # Run forever
        except asyncio.CancelledError:
            logger.info(f"Consumer cancelled for queue {queue}")
            if active_tasks:
                logger.info(
                    f"Waiting for {len(active_tasks)} active tasks to complete..."
                )
                await asyncio.gather(*active_tasks, return_exceptions=True)
            raise

    async def declare_queue(
        self, queue: str, durable: bool = True, dlq_enabled: bool = True
    ) -> bool:
        if queue in self._declared_queues:
            return True
        try:
            await self._ensure_channel()

            queue_arguments = {}
            if dlq_enabled:
                queue_arguments.update(await self._setup_dead_letter_queue(queue))

            await self.channel.declare_queue(
                queue,
                durable=durable,
                arguments=queue_arguments or None,
            )
            self._declared_queues.add(queue)
            logger.info(f"Declared queue: {queue} (DLQ enabled: {dlq_enabled})")
            return True
        except Exception as e:
            logger.error(f"Failed to declare queue {queue}: {e}")
            return False
