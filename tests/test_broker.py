"""
Tests for RabbitBroker ack / reject handling and publishing.
"""

from unittest.mock import AsyncMock, MagicMock

import aio_pika
import pytest

from scholarworker.broker import RabbitBroker


def incoming(body: bytes) -> MagicMock:
    message = MagicMock()
    message.body = body
    message.message_id = "m-1"
    message.ack = AsyncMock()
    message.reject = AsyncMock()
    return message


class TestHandle:
    """Test per-message acknowledgement."""

    @pytest.mark.asyncio
    async def test_ack_after_handler_returns(self):
        """Verify the message is acked once the handler returns."""
        handler = AsyncMock(return_value=None)
        message = incoming(b"{}")

        await RabbitBroker.handle(message, handler)

        handler.assert_awaited_once_with(b"{}")
        message.ack.assert_awaited_once()
        message.reject.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_without_requeue_on_error(self):
        """Verify a handler error rejects the message without requeue."""
        handler = AsyncMock(side_effect=RuntimeError("boom"))
        message = incoming(b"{}")

        await RabbitBroker.handle(message, handler)

        message.reject.assert_awaited_once_with(requeue=False)
        message.ack.assert_not_awaited()


class TestPublish:
    """Test outbound publishing."""

    @pytest.mark.asyncio
    async def test_publish_persistent_message(self):
        """Verify publish declares the queue and sends a persistent message."""
        broker = RabbitBroker()
        channel = MagicMock()
        channel.declare_queue = AsyncMock()
        channel.default_exchange.publish = AsyncMock()
        broker._channel = channel

        await broker.publish("calculations-queue", b'{"researcher_id":"r1"}')

        channel.declare_queue.assert_awaited_once_with("calculations-queue", durable=True)
        message = channel.default_exchange.publish.await_args.args[0]
        assert message.body == b'{"researcher_id":"r1"}'
        assert message.delivery_mode == aio_pika.DeliveryMode.PERSISTENT
        assert channel.default_exchange.publish.await_args.kwargs["routing_key"] == (
            "calculations-queue"
        )

    @pytest.mark.asyncio
    async def test_close_without_connect(self):
        """Verify close is safe before connect."""
        broker = RabbitBroker()

        await broker.close()

        assert broker._channel is None
