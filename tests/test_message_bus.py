"""Tests for message bus infrastructure."""

import pytest
from datetime import datetime
from sync_platform.shared.message_bus import Message, InMemoryMessageBus, create_message_bus


def test_message_serialization():
    """Test message serialization and deserialization."""
    msg = Message(
        event_type="product.updated",
        payload={"id": 7, "price": 12.5},
        timestamp=datetime(2024, 1, 1, 12, 0, 0),
        source="shop",
        correlation_id="test-123"
    )

    restored = Message.from_json(msg.to_json())

    assert restored == msg


def test_message_serialization_stringifies_unknown_values():
    """Test payload values without a JSON form are stringified."""
    msg = Message(
        event_type="pipeline.execution.completed",
        payload={"finished_at": datetime(2024, 1, 1, 12, 0, 0)},
        timestamp=datetime(2024, 1, 1, 12, 0, 0),
        source="pipeline"
    )

    restored = Message.from_json(msg.to_json())

    assert restored.payload == {"finished_at": "2024-01-01 12:00:00"}


def test_in_memory_message_bus_publish_subscribe(message_bus):
    """Test publishing and subscribing to messages."""
    received_messages = []

    message_bus.subscribe("source.events", received_messages.append)

    msg = Message(
        event_type="product.created",
        payload={"id": 1},
        timestamp=datetime.now(),
        source="shop"
    )
    message_bus.publish("source.events", msg)

    assert received_messages == [msg]


def test_in_memory_message_bus_multiple_subscribers(message_bus):
    """Test multiple subscribers receive the same message."""
    received_1 = []
    received_2 = []

    message_bus.subscribe("source.events", received_1.append)
    message_bus.subscribe("source.events", received_2.append)

    message_bus.publish("source.events", Message(
        event_type="product.created",
        payload={},
        timestamp=datetime.now(),
        source="shop"
    ))

    assert len(received_1) == 1
    assert len(received_2) == 1


def test_in_memory_message_bus_unsubscribe(message_bus):
    """Test unsubscribing from a topic."""
    received_messages = []

    message_bus.subscribe("source.events", received_messages.append)
    message_bus.unsubscribe("source.events")

    message_bus.publish("source.events", Message(
        event_type="product.created",
        payload={},
        timestamp=datetime.now(),
        source="shop"
    ))

    assert received_messages == []


def test_publish_without_subscribers_is_noop(message_bus):
    """Test publishing to a topic nobody listens on."""
    message_bus.publish("nobody.listens", Message(
        event_type="noop",
        payload={},
        timestamp=datetime.now(),
        source="test"
    ))


class TestCreateMessageBus:
    """Test message bus selection by URL."""

    def test_memory_url(self):
        """Test memory:// builds an in-memory bus."""
        assert isinstance(create_message_bus("memory://"), InMemoryMessageBus)

    def test_unsupported_url(self):
        """Test an unknown scheme is rejected."""
        with pytest.raises(ValueError):
            create_message_bus("amqp://localhost")
