"""
Sensory Dashboard Logging Configuration
Structured logging setup with file rotation
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import SensorySettings, get_settings


def setup_logging(settings: Optional[SensorySettings] = None) -> logging.Logger:
    """Set up structured logging for the dashboard backend"""
    settings = settings or get_settings()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    if settings.is_development:
        console_formatter = logging.Formatter(
            '\033[92m%(asctime)s\033[0m - '
            '\033[94m%(name)s\033[0m - '
            '%(levelname)s - '
            '%(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        console_formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    # File handler with rotation
    if settings.LOG_TO_FILE:
        Path(settings.LOG_FILE_PATH).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            settings.LOG_FILE_PATH,
            maxBytes=settings.LOG_MAX_SIZE,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(funcName)s %(message)s'
        ))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if not settings.is_development
            else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("sensory.audio").setLevel(logging.DEBUG)
    logging.getLogger("sensory.websocket").setLevel(logging.INFO)

    logger = logging.getLogger("sensory")
    logger.info(f"Logging configured - Level: {settings.LOG_LEVEL}")

    return logger


class EngineLogger:
    """Specialized logger for mixer engine operations"""

    def __init__(self):
        self.logger = structlog.get_logger("sensory.audio")

    def log_initialized(
        self,
        sample_rate: int,
        buffers: int,
        duration_ms: float,
        backend: str = None
    ) -> None:
        """Log successful engine initialization"""
        self.logger.info(
            "Audio engine initialized",
            sample_rate=sample_rate,
            buffers=buffers,
            duration_ms=duration_ms,
            backend=backend
        )

    def log_initialization_failed(self, stage: str, error: str) -> None:
        """Log engine initialization failure"""
        self.logger.error(
            "Audio engine initialization failed",
            stage=stage,
            error=error
        )

    def log_buffer_generated(
        self,
        sound: str,
        channels: int,
        duration_s: float,
        generation_ms: float
    ) -> None:
        """Log generation of one cached sound buffer"""
        self.logger.debug(
            "Sound buffer generated",
            sound=sound,
            channels=channels,
            duration_s=duration_s,
            generation_ms=generation_ms
        )

    def log_channel_event(self, event: str, channel_id: int, **kwargs: Any) -> None:
        """Log channel state transition"""
        self.logger.debug(
            "Channel event",
            channel_event=event,
            channel_id=channel_id,
            **kwargs
        )

    def log_operation_skipped(self, operation: str, reason: str, **kwargs: Any) -> None:
        """Log an operation that degraded to a no-op"""
        self.logger.warning(
            "Operation skipped",
            operation=operation,
            reason=reason,
            **kwargs
        )

    def log_channel_error(self, operation: str, channel_id: int, error: str) -> None:
        """Log a per-channel failure that did not stop the batch"""
        self.logger.error(
            "Channel operation failed",
            operation=operation,
            channel_id=channel_id,
            error=error
        )

    def log_fade(self, phase: str, duration_ms: float, start_gain: float) -> None:
        """Log master fade-out progress"""
        self.logger.info(
            "Master fade",
            phase=phase,
            duration_ms=duration_ms,
            start_gain=start_gain
        )

    def log_disposed(self, buffers_released: int) -> None:
        """Log engine teardown"""
        self.logger.info(
            "Audio engine disposed",
            buffers_released=buffers_released
        )


class WebSocketLogger:
    """Specialized logger for WebSocket operations"""

    def __init__(self):
        self.logger = structlog.get_logger("sensory.websocket")

    def log_connection(self, connection_id: str) -> None:
        """Log WebSocket connection"""
        self.logger.info(
            "WebSocket connection established",
            connection_id=connection_id
        )

    def log_disconnection(self, connection_id: str, reason: str = None) -> None:
        """Log WebSocket disconnection"""
        self.logger.info(
            "WebSocket connection closed",
            connection_id=connection_id,
            reason=reason
        )

    def log_message_sent(
        self,
        connection_id: str,
        message_type: str,
        size_bytes: int
    ) -> None:
        """Log WebSocket message sent"""
        self.logger.debug(
            "WebSocket message sent",
            connection_id=connection_id,
            message_type=message_type,
            size_bytes=size_bytes
        )


engine_logger = EngineLogger()
websocket_logger = WebSocketLogger()

__all__ = [
    "setup_logging",
    "EngineLogger",
    "WebSocketLogger",
    "engine_logger",
    "websocket_logger",
]
