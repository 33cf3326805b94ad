"""
Message protocol for engine audit events.
Defines the structure of messages components publish while they work.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
import uuid


class MessageType(Enum):
    """Types of events engine components publish."""

    # Detection and balancing
    CONFLICT = "conflict"                       # Conflicts detected
    SUGGESTIONS = "suggestions"                 # Balancing suggestions generated

    # Validation
    VALIDATION_RESULT = "validation_result"

    # Mutation
    SUGGESTION_APPLIED = "suggestion_applied"
    RESOLUTION_SELECTED = "resolution_selected"
    SNAPSHOT = "snapshot"                       # Snapshot taken
    ROLLBACK = "rollback"                       # Snapshot restored

    # Side effects
    NOTIFICATION = "notification"               # Manager notified

    # Status messages
    STATUS = "status"
    ERROR = "error"
    COMPLETE = "complete"                       # Batch finished


@dataclass
class Message:
    """
    Message structure for engine events.

    Attributes:
        msg_type: Type of the message
        sender: Name of the publishing component
        receiver: Name of the receiving subscriber (None for broadcast)
        content: Message payload
        correlation_id: ID to track related messages
        timestamp: When the message was created
        metadata: Additional message metadata
    """
    msg_type: MessageType
    sender: str
    receiver: Optional[str]
    content: Any
    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)

    def __str__(self) -> str:
        """Human-readable message representation."""
        receiver_str = self.receiver or "ALL"
        content_preview = str(self.content)[:100]
        if len(str(self.content)) > 100:
            content_preview += "..."
        return (
            f"[{self.timestamp.strftime('%H:%M:%S')}] "
            f"{self.sender} → {receiver_str} "
            f"({self.msg_type.value}): {content_preview}"
        )

    def to_dict(self) -> dict:
        """Convert message to dictionary for logging/serialization."""
        return {
            "msg_type": self.msg_type.value,
            "sender": self.sender,
            "receiver": self.receiver,
            "content": self.content,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata
        }
