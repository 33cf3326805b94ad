"""
Message Bus for engine audit events.
Routes events from components to subscribers and keeps a communication log.
"""
from collections import defaultdict
from typing import Callable, Dict, List, Optional
from rich.console import Console
from rich.table import Table

from .message import Message, MessageType


class MessageBus:
    """
    In-process publish/subscribe hub.

    Features:
    - Routing to a named subscriber or broadcast to all
    - Message history logging
    - Optional colour console output
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize the message bus.

        Args:
            verbose: Whether to print messages to console
        """
        self.subscribers: Dict[str, Callable[[Message], None]] = {}
        self.publishers: List[str] = []
        self.message_history: List[Message] = []
        self.verbose = verbose
        self.console = Console()

    def register(self, name: str,
                 handler: Optional[Callable[[Message], None]] = None) -> None:
        """
        Register a component on the bus.

        Args:
            name: Unique name of the component
            handler: Callback for incoming messages; publishers may omit it
        """
        if name not in self.publishers:
            self.publishers.append(name)
        if handler is not None:
            self.subscribers[name] = handler
        if self.verbose:
            self.console.print(f"[dim]📡 Registered: {name}[/dim]")

    def unregister(self, name: str) -> None:
        """Remove a component from the message bus."""
        self.subscribers.pop(name, None)
        if name in self.publishers:
            self.publishers.remove(name)

    def send(self, message: Message) -> None:
        """
        Send a message to a specific subscriber or broadcast to all.

        Args:
            message: The message to send
        """
        self.message_history.append(message)

        if self.verbose:
            self._print_message(message)

        if message.receiver is None:
            # Broadcast to all subscribers except sender
            for name, handler in list(self.subscribers.items()):
                if name != message.sender:
                    handler(message)
        elif message.receiver in self.subscribers:
            self.subscribers[message.receiver](message)
        elif self.verbose:
            self.console.print(
                f"[red]⚠️ Subscriber '{message.receiver}' not found![/red]"
            )

    def _print_message(self, message: Message) -> None:
        """Pretty print a message to console."""
        type_colors = {
            MessageType.CONFLICT: "yellow",
            MessageType.SUGGESTIONS: "cyan",
            MessageType.VALIDATION_RESULT: "magenta",
            MessageType.SUGGESTION_APPLIED: "green",
            MessageType.RESOLUTION_SELECTED: "green",
            MessageType.ROLLBACK: "yellow",
            MessageType.COMPLETE: "green",
            MessageType.ERROR: "red",
        }

        color = type_colors.get(message.msg_type, "white")
        receiver = message.receiver or "ALL"

        content_str = str(message.content)
        if len(content_str) > 150:
            content_str = content_str[:150] + "..."

        self.console.print(
            f"[dim]{message.timestamp.strftime('%H:%M:%S.%f')[:-3]}[/dim] "
            f"[bold]{message.sender}[/bold] → [bold]{receiver}[/bold] "
            f"[{color}]({message.msg_type.value})[/{color}]"
        )
        if content_str:
            self.console.print(f"  [dim]└─ {content_str}[/dim]")

    def get_history(self,
                    sender: Optional[str] = None,
                    receiver: Optional[str] = None,
                    msg_type: Optional[MessageType] = None) -> List[Message]:
        """
        Get filtered message history.

        Args:
            sender: Filter by sender
            receiver: Filter by receiver
            msg_type: Filter by message type

        Returns:
            List of messages matching the filters
        """
        messages = self.message_history

        if sender:
            messages = [m for m in messages if m.sender == sender]
        if receiver:
            messages = [m for m in messages if m.receiver == receiver]
        if msg_type:
            messages = [m for m in messages if m.msg_type == msg_type]

        return messages

    def get_conversation(self, correlation_id: str) -> List[Message]:
        """Get all messages sharing a correlation id."""
        return [m for m in self.message_history if m.correlation_id == correlation_id]

    def print_summary(self) -> None:
        """Print a summary of all engine events."""
        table = Table(title="📊 Engine Event Summary")
        table.add_column("Component", style="cyan")
        table.add_column("Events Published", justify="right")
        table.add_column("Last Event", justify="left")

        sent_count = defaultdict(int)
        last_event: Dict[str, str] = {}
        for msg in self.message_history:
            sent_count[msg.sender] += 1
            last_event[msg.sender] = msg.msg_type.value

        for name in self.publishers:
            table.add_row(name, str(sent_count[name]), last_event.get(name, "-"))

        self.console.print(table)

    def export_log(self) -> List[dict]:
        """Export message history as list of dictionaries."""
        return [msg.to_dict() for msg in self.message_history]

    def clear_history(self) -> None:
        """Clear message history."""
        self.message_history = []
