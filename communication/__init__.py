"""
Communication module for engine audit events.
"""
from .message import Message, MessageType
from .message_bus import MessageBus

__all__ = ["Message", "MessageType", "MessageBus"]
