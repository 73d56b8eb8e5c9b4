"""Analytics module for search outcome events."""

from ask_ed.analytics.events import EventType, SearchEvent, SearchEventLog

__all__ = ["EventType", "SearchEvent", "SearchEventLog"]
