"""
Adapters layer - External calendar integrations.
"""

from .google_calendar import GoogleCalendarSource
from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarSource
from .memory_source import InMemoryCalendarSource

__all__ = ["GoogleCalendarSource", "GraphAuthenticator", "GraphCalendarSource", "InMemoryCalendarSource"]
