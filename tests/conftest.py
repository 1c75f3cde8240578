"""Shared fixtures for hackmatch tests."""

import pytest

from hackmatch.events import Event, EventDispatcher, EventType


class EventCollector:
    """Synchronous subscriber that records every event it receives."""

    def __init__(self):
        self.events: list[Event] = []

    def __call__(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType | str) -> list[Event]:
        name = event_type.value if isinstance(event_type, EventType) else event_type
        return [event for event in self.events if event.type == name]

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]


@pytest.fixture
def dispatcher():
    return EventDispatcher()


@pytest.fixture
def collector(dispatcher):
    """Collector subscribed to every known event type."""
    collector = EventCollector()
    for event_type in EventType:
        dispatcher.subscribe(event_type, collector)
    return collector


SAMPLE_RESUME = """
Jane Doe
Full-stack developer with 6 years of experience

Skills: JavaScript, React, Node.js, Python
Technologies: PostgreSQL; Docker and AWS

Experience:
2019-2023: Senior Developer at Tech Corp
- Led the payments team
- Built microservices
2016-2019: Junior Developer at StartupXYZ

Education:
2016: Bachelor of Computer Science, University of Technology
"""


@pytest.fixture
def sample_resume():
    return SAMPLE_RESUME
