"""toolrelay - tool-call dispatch for realtime conversational AI."""

__version__ = "0.1.0"
