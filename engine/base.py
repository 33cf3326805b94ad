"""
Base component class that all engine components inherit from.
Provides common functionality for logging, event publishing and error handling.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import os
import traceback

from rich.console import Console

from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from config import AppConfig, config as default_config


LOGGER_NAME = "shift_engine"


class ComponentState(Enum):
    """Component lifecycle states."""
    IDLE = "idle"
    PROCESSING = "processing"
    ERROR = "error"


class BaseComponent(ABC):
    """
    Abstract base class for all engine components.

    Provides:
    - Dual logging (stdlib logger + colour console when verbose)
    - Optional audit events via MessageBus
    - Error handling that converts exceptions into messages
    - Metrics and health reporting

    Attributes:
        name: Unique identifier for the component
        config: Application configuration
        message_bus: Optional bus for audit events
        logger: Named logger ``shift_engine.<name>``
        component_state: Current lifecycle state
    """

    # Class-level file log (shared across all components)
    _file_handler: Optional[logging.Handler] = None
    _log_file_path: Optional[str] = None

    @classmethod
    def setup_file_logging(cls, log_dir: str = "output") -> str:
        """
        Set up file logging for all components.

        Args:
            log_dir: Directory for log files

        Returns:
            Path to the log file
        """
        if cls._file_handler is not None:
            return cls._log_file_path

        Path(log_dir).mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = os.path.join(log_dir, f"shift_engine_{timestamp}.txt")

        root = logging.getLogger(LOGGER_NAME)
        root.setLevel(logging.DEBUG)

        file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        root.addHandler(file_handler)

        cls._file_handler = file_handler
        cls._log_file_path = log_file

        root.info("=" * 70)
        root.info("SHIFT CONFLICT DETECTION & BALANCING ENGINE - LOG FILE")
        root.info(f"Session started: {datetime.now().isoformat()}")
        root.info("=" * 70)

        return log_file

    @classmethod
    def close_file_logging(cls) -> None:
        """Detach and close the shared file handler."""
        if cls._file_handler is None:
            return
        logging.getLogger(LOGGER_NAME).removeHandler(cls._file_handler)
        cls._file_handler.close()
        cls._file_handler = None
        cls._log_file_path = None

    def __init__(self, name: str,
                 config: Optional[AppConfig] = None,
                 message_bus: Optional[MessageBus] = None,
                 verbose: Optional[bool] = None):
        """
        Initialize the component.

        Args:
            name: Unique name for this component
            config: Configuration, defaults to the global one
            message_bus: Optional bus for audit events
            verbose: Print colour console output, defaults to config.verbose
        """
        self.name = name
        self.config = config or default_config
        self.message_bus = message_bus
        self.verbose = self.config.verbose if verbose is None else verbose
        self.console = Console()
        self.logger = logging.getLogger(f"{LOGGER_NAME}.{name}")
        self.component_state = ComponentState.IDLE
        self._error_count = 0
        self._max_errors = 3
        self._executions = 0

        if self.message_bus is not None:
            self.message_bus.register(self.name)

        if self.config.log_dir:
            BaseComponent.setup_file_logging(self.config.log_dir)

        self.log("Component initialized", "debug")

    @abstractmethod
    def execute(self, **kwargs) -> Any:
        """
        Run the component's main operation.

        Returns:
            Result of the operation
        """

    # ==================== Logging ====================

    def log(self, message: str, level: str = "info") -> None:
        """
        Log a message with component context.

        Args:
            message: The log message
            level: Log level (info, warning, error, debug, success)
        """
        if self.verbose:
            colors = {
                "info": "blue",
                "warning": "yellow",
                "error": "red",
                "debug": "dim",
                "success": "green"
            }
            color = colors.get(level, "white")
            self.console.print(f"[{color}][{self.name}] {message}[/{color}]")

        log_level = {
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "debug": logging.DEBUG,
            "success": logging.INFO,
        }.get(level, logging.INFO)
        self.logger.log(log_level, f"[{self.name}] {message}")

    # ==================== Events ====================

    def publish(self, msg_type: MessageType, content: Any,
                metadata: Optional[dict] = None) -> Optional[Message]:
        """
        Broadcast an audit event if a message bus is attached.

        Args:
            msg_type: Type of message
            content: Message payload
            metadata: Additional metadata

        Returns:
            The sent message, or None without a bus
        """
        if self.message_bus is None:
            return None
        message = Message(
            msg_type=msg_type,
            sender=self.name,
            receiver=None,
            content=content,
            metadata=metadata or {},
        )
        self.message_bus.send(message)
        return message

    # ==================== Error Handling ====================

    def _handle_error(self, error: Exception, context: str = "") -> str:
        """
        Record an error raised inside a routine.

        Args:
            error: The exception that occurred
            context: What was happening when the error occurred

        Returns:
            Human-readable error text for the failure result
        """
        self._error_count += 1
        self.component_state = ComponentState.ERROR

        error_msg = f"Error in {context}: {type(error).__name__}: {error}"
        self.log(error_msg, "error")
        self.logger.debug(f"[{self.name}] Traceback:\n{traceback.format_exc()}")

        if self._error_count >= self._max_errors:
            self.log(f"{self._error_count} errors so far - component degraded", "warning")

        self.publish(MessageType.ERROR, error_msg)
        self.component_state = ComponentState.IDLE
        return str(error)

    def _begin(self) -> None:
        self._executions += 1
        self.component_state = ComponentState.PROCESSING

    def _end(self) -> None:
        self.component_state = ComponentState.IDLE

    # ==================== Status ====================

    def health_check(self) -> bool:
        """Check if the component is below the error threshold."""
        return (
            self.component_state != ComponentState.ERROR
            and self._error_count < self._max_errors
        )

    def get_metrics(self) -> Dict[str, Any]:
        """Get component metrics."""
        return {
            "name": self.name,
            "state": self.component_state.value,
            "executions": self._executions,
            "error_count": self._error_count,
            "is_healthy": self.health_check(),
        }

    def __str__(self) -> str:
        return f"{self.name} ({self.__class__.__name__})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}')>"
