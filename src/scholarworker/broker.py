"""
RabbitMQ transport for ScholarWorker.

Messages are acknowledged only after the handler returns, so a crash
mid-job leaves the message unacked and the broker redelivers it.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractIncomingMessage, AbstractRobustConnection

from .config import BrokerConfig

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes], Awaitable[object]]


class RabbitBroker:
    """Consumes and publishes JSON messages on durable queues."""

    def __init__(self, config: Optional[BrokerConfig] = None):
        self.config = config or BrokerConfig()
        self._connection: Optional[AbstractRobustConnection] = None
        self._channel: Optional[AbstractChannel] = None

    async def connect(self) -> None:
        if self._channel is not None:
            return
        self._connection = await aio_pika.connect_robust(self.config.url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=self.config.max_concurrent_jobs)
        logger.info("Connected to RabbitMQ")

    async def _get_channel(self) -> AbstractChannel:
        if self._channel is None:
            await self.connect()
        return self._channel

    async def consume(self, queue_name: str, handler: MessageHandler) -> str:
        """Start consuming ``queue_name``; returns the consumer tag.

        Each message body is passed to ``handler``. The message is acked once
        the handler returns and rejected (not requeued) if it raises.
        """
        channel = await self._get_channel()
        queue = await channel.declare_queue(queue_name, durable=True)

        async def on_message(message: AbstractIncomingMessage) -> None:
            await self.handle(message, handler)

        tag = await queue.consume(on_message)
        logger.info(f"Listening on {queue_name}")
        return tag

    @staticmethod
    async def handle(message: AbstractIncomingMessage, handler: MessageHandler) -> None:
        try:
            await handler(message.body)
        except Exception:
            logger.exception(
                f"Handler failed for message {message.message_id or message.delivery_tag}"
            )
            await message.reject(requeue=False)
            return
        await message.ack()

    async def publish(self, queue_name: str, body: bytes) -> None:
        """Publish a persistent JSON message to a durable queue."""
        channel = await self._get_channel()
        await channel.declare_queue(queue_name, durable=True)
        await channel.default_exchange.publish(
            aio_pika.Message(
                body=body,
                content_type="application/json",
                delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            ),
            routing_key=queue_name,
        )
        logger.debug(f"Published {len(body)} bytes to {queue_name}")

    async def close(self) -> None:
        """Close channel and connection."""
        if self._channel is not None:
            await self._channel.close()
            self._channel = None
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
