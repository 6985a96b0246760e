"""Tool framework for the realtime conversation.

Provides the tool protocol, the capability-gated registry, and the
built-in tools (color palette, web search, date/time, clipboard and
the universal webhook caller).
"""
