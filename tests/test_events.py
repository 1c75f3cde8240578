"""Tests for the event dispatcher."""

import asyncio

from hackmatch.events import Event, EventDispatcher, EventType, event_type_name


class TestEventType:
    """Tests for event type naming."""

    def test_enum_values_follow_domain_verb(self):
        """Test every event type is written as domain.verb."""
        for event_type in EventType:
            domain, _, verb = event_type.value.partition(".")
            assert domain and verb

    def test_event_type_name(self):
        """Test enum members and plain strings resolve to the same name."""
        assert event_type_name(EventType.RESUME_PARSED) == "resume.parsed"
        assert event_type_name("resume.parsed") == "resume.parsed"


class TestEventDispatcher:
    """Tests for EventDispatcher."""

    def test_publish_to_sync_handler(self):
        """Test a synchronous handler receives the published event."""
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(EventType.RESUME_UPLOADED, received.append)

        event = dispatcher.publish(EventType.RESUME_UPLOADED, {"userId": "u1"}, source="test")

        assert received == [event]
        assert event.type == "resume.uploaded"
        assert event.payload == {"userId": "u1"}
        assert event.source == "test"
        assert event.timestamp.tzinfo is not None

    def test_async_handler_without_running_loop(self):
        """Test an async handler runs to completion when no loop is running."""
        dispatcher = EventDispatcher()
        received = []

        async def handler(event: Event) -> None:
            await asyncio.sleep(0)
            received.append(event.type)

        dispatcher.subscribe("custom.event", handler)
        dispatcher.publish("custom.event")

        assert received == ["custom.event"]

    def test_async_handler_is_fire_and_forget_inside_loop(self):
        """Test publish does not wait for async handlers on a running loop."""
        dispatcher = EventDispatcher()
        received = []

        async def handler(event: Event) -> None:
            await asyncio.sleep(0)
            received.append(event.type)

        dispatcher.subscribe("custom.event", handler)

        async def scenario():
            dispatcher.publish("custom.event")
            before = list(received)
            await dispatcher.drain()
            return before

        before = asyncio.run(scenario())

        assert before == []
        assert received == ["custom.event"]
        assert dispatcher.pending_count() == 0

    def test_failing_handler_does_not_block_others(self):
        """Test error isolation between handlers of the same event."""
        dispatcher = EventDispatcher()
        received = []

        def broken(event: Event) -> None:
            raise RuntimeError("boom")

        async def broken_async(event: Event) -> None:
            raise RuntimeError("async boom")

        dispatcher.subscribe("custom.event", broken)
        dispatcher.subscribe("custom.event", broken_async)
        dispatcher.subscribe("custom.event", received.append)

        dispatcher.publish("custom.event")

        assert len(received) == 1

    def test_no_replay_for_late_subscribers(self):
        """Test a handler subscribed after publish never sees the event."""
        dispatcher = EventDispatcher()
        dispatcher.publish("custom.event")

        received = []
        dispatcher.subscribe("custom.event", received.append)

        assert received == []

    def test_unsubscribe(self):
        """Test unsubscribing a handler."""
        dispatcher = EventDispatcher()
        received = []
        dispatcher.subscribe(EventType.SYSTEM_INFO, received.append)

        assert dispatcher.unsubscribe(EventType.SYSTEM_INFO, received.append) is True
        assert dispatcher.unsubscribe(EventType.SYSTEM_INFO, received.append) is False

        dispatcher.publish(EventType.SYSTEM_INFO)
        assert received == []

    def test_list_types_and_count_subscribers(self):
        """Test subscription introspection."""
        dispatcher = EventDispatcher()
        dispatcher.subscribe(EventType.TEAM_FORMED, lambda e: None)
        dispatcher.subscribe(EventType.TEAM_FORMED, lambda e: None)
        dispatcher.subscribe("match.requested", lambda e: None)

        assert sorted(dispatcher.list_types()) == ["match.requested", "team.formed"]
        assert dispatcher.count_subscribers(EventType.TEAM_FORMED) == 2
        assert dispatcher.count_subscribers(EventType.SYSTEM_ERROR) == 0

        dispatcher.clear()
        assert dispatcher.list_types() == []

    def test_nested_publish_from_async_handler_completes(self):
        """Test events published by async handlers are delivered before publish returns."""
        dispatcher = EventDispatcher()
        received = []

        async def relay(event: Event) -> None:
            dispatcher.publish("second.event")

        async def sink(event: Event) -> None:
            await asyncio.sleep(0)
            received.append(event.type)

        dispatcher.subscribe("first.event", relay)
        dispatcher.subscribe("second.event", sink)

        dispatcher.publish("first.event")

        assert received == ["second.event"]
