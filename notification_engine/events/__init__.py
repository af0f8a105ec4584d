"""Domain event sources (the collaborator interface the evaluator pulls from)."""

from .source import DatabaseEventSource, EventSource, EventSourceError, StaticEventSource

__all__ = ["DatabaseEventSource", "EventSource", "EventSourceError", "StaticEventSource"]
