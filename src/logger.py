"""
Centralized logging configuration for the Dispatch Dashboard.

This module provides the application's logging setup with:
- Structured JSON logging to a daily file for later analysis
- Automatic file rotation (prevents log files from growing indefinitely)
- Configurable log levels (DEBUG, INFO, WARNING, ERROR, CRITICAL)
- Automatic cleanup of old logs (retention policy)
- Human-readable console output for development
- Context-aware logging (pick_list_id, worker_id, session_id)

Every scan, update call and print job is logged, so a dispatcher can answer
"was this shipment updated, and was its label printed?" from the log alone.

Log file location: [Logging] LogDirectory in config.ini,
                   default ~/.dispatch_dashboard/logs
Log file format: YYYY-MM-DD.log

Example log entry (JSON format):
    {"timestamp": "2025-11-05T14:30:45.123", "level": "INFO", "tool": "dispatch_dashboard",
     "pick_list_id": 1042, "worker_id": "17", "session_id": "1042-20251105143001",
     "module": "scan_session", "function": "resolve_scan", "line": 212,
     "message": "Shipment se-939039759 marked shipped"}
"""

import logging
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any
import configparser
from contextvars import ContextVar


# Context variables for structured logging
_pick_list_id: ContextVar[Optional[int]] = ContextVar('pick_list_id', default=None)
_worker_id: ContextVar[Optional[str]] = ContextVar('worker_id', default=None)
_session_id: ContextVar[Optional[str]] = ContextVar('session_id', default=None)


class StructuredJSONFormatter(logging.Formatter):
    """
    Custom JSON formatter for structured logging.

    Outputs log records as JSON with fields:
    - timestamp: ISO 8601 format with milliseconds
    - level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - tool: Always "dispatch_dashboard"
    - pick_list_id: Pick list currently open (if set)
    - worker_id: Entity ID of the logged-in worker (if set)
    - session_id: Current scan session (if set)
    - module: Logger name
    - function: Function name
    - line: Line number
    - message: Log message
    - exc_info: Exception information (if present)
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'tool': 'dispatch_dashboard',
            'pick_list_id': _pick_list_id.get(),
            'worker_id': _worker_id.get(),
            'session_id': _session_id.get(),
            'module': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        if record.exc_info:
            log_data['exc_info'] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_data'):
            log_data['extra'] = record.extra_data

        return json.dumps(log_data, ensure_ascii=False, default=str)


class AppLogger:
    """
    Centralized application logger with file rotation and cleanup.

    Logging is configured once, on the first call to get_logger(), no matter
    how many modules import it. Settings come from the [Logging] section of
    config.ini:
    - LogLevel: DEBUG, INFO, WARNING, ERROR, CRITICAL
    - MaxLogSizeMB: Maximum size per log file before rotation
    - LogRetentionDays: How many days of logs to keep
    - LogDirectory: Where log files are written

    Attributes:
        _initialized: Whether logging has been configured (class-level)
        config_path: config.ini consulted on first setup (class-level)
    """

    _initialized: bool = False
    config_path: str = 'config.ini'

    @classmethod
    def get_logger(cls, name: str = 'DispatchDashboard') -> logging.Logger:
        """
        Get or create application logger with lazy initialization.

        Usage in modules:
            from logger import get_logger
            logger = get_logger(__name__)
            logger.info("Starting operation")

        Args:
            name: Logger name, typically the module name (__name__)

        Returns:
            Configured logger instance for the specified name
        """
        if not cls._initialized:
            cls._setup_logging()
            cls._initialized = True

        return logging.getLogger(name)

    @classmethod
    def _setup_logging(cls):
        """
        Setup logging configuration from config.ini.

        Configures:
        1. Log directory and daily file path
        2. Log level (from config or default to INFO)
        3. JSON file handler with rotation
        4. Console handler with a readable format
        5. Old log cleanup
        """
        config = cls._load_config(cls.config_path)

        # === LOG DIRECTORY SETUP ===
        default_dir = Path(os.path.expanduser("~")) / ".dispatch_dashboard" / "logs"
        log_dir = Path(config.get('Logging', 'LogDirectory', fallback='') or default_dir)

        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log_dir = default_dir
            log_dir.mkdir(parents=True, exist_ok=True)
            print(f"Warning: Could not create log directory. Using default: {log_dir}. Error: {e}")

        log_file = log_dir / f"{datetime.now():%Y-%m-%d}.log"

        # === LOG LEVEL CONFIGURATION ===
        log_level_str = config.get('Logging', 'LogLevel', fallback='INFO')
        log_level = getattr(logging, log_level_str.upper(), logging.INFO)

        max_log_size = config.getint('Logging', 'MaxLogSizeMB', fallback=10) * 1024 * 1024

        # === LOG FORMATTERS ===
        json_formatter = StructuredJSONFormatter()

        # Example: 2025-11-05 14:30:45 | scan_session | INFO | resolve_scan:212 | Shipment marked shipped
        console_formatter = logging.Formatter(
            fmt='%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # === FILE HANDLER ===
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_log_size,
            backupCount=30,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(json_formatter)

        # === CONSOLE HANDLER ===
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(console_formatter)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)
        root_logger.addHandler(file_handler)
        root_logger.addHandler(console_handler)

        retention_days = config.getint('Logging', 'LogRetentionDays', fallback=30)
        cls._cleanup_old_logs(log_dir, retention_days)

        logger = logging.getLogger('DispatchDashboard')
        logger.info("=" * 80)
        logger.info("Dispatch Dashboard Started")
        logger.info(f"Log Level: {log_level_str}")
        logger.info(f"Log File: {log_file}")
        logger.info("=" * 80)

    @staticmethod
    def _load_config(config_path: str) -> configparser.ConfigParser:
        """
        Load the [Logging] settings from config.ini.

        Configuration options:
            [Logging]
            LogLevel = INFO
            MaxLogSizeMB = 10
            LogRetentionDays = 30
            LogDirectory =

        Returns:
            ConfigParser object; empty if config.ini is missing (defaults apply)
        """
        config = configparser.ConfigParser()
        path = Path(config_path)

        if path.exists():
            config.read(path, encoding='utf-8')

        return config

    @staticmethod
    def _cleanup_old_logs(log_dir: Path, retention_days: int):
        """
        Delete log files older than the retention period.

        Args:
            log_dir: Directory containing log files
            retention_days: Number of days to keep logs.
                            0 or negative disables cleanup.
        """
        if retention_days <= 0:
            return

        cutoff_date = datetime.now() - timedelta(days=retention_days)

        try:
            for log_file in log_dir.glob("*.log*"):
                file_mtime = datetime.fromtimestamp(log_file.stat().st_mtime)
                if file_mtime < cutoff_date:
                    log_file.unlink()
                    logging.getLogger('DispatchDashboard').debug(f"Deleted old log: {log_file.name}")

        except OSError as e:
            # File in use, permissions: never fatal
            logging.getLogger('DispatchDashboard').warning(f"Failed to cleanup old logs: {e}")


def get_logger(name: str = 'DispatchDashboard') -> logging.Logger:
    """
    Get application logger.

    Example:
        >>> from logger import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Starting process")
    """
    return AppLogger.get_logger(name)


def set_pick_list_context(pick_list_id: Optional[int]) -> None:
    """
    Set the open pick list for structured logging context.

    Args:
        pick_list_id: PICK_LIST_ID of the list being worked, or None to clear
    """
    _pick_list_id.set(pick_list_id)


def set_worker_context(worker_id: Optional[str]) -> None:
    """
    Set the logged-in worker for structured logging context.

    Args:
        worker_id: Entity ID of the worker (e.g., "17") or None to clear
    """
    _worker_id.set(worker_id)


def set_session_context(session_id: Optional[str]) -> None:
    """
    Set current scan session ID for structured logging context.

    Args:
        session_id: Session identifier (e.g., "1042-20251105143001") or None to clear
    """
    _session_id.set(session_id)


def clear_logging_context() -> None:
    """Clear all logging context (pick_list_id, worker_id, session_id)."""
    _pick_list_id.set(None)
    _worker_id.set(None)
    _session_id.set(None)
