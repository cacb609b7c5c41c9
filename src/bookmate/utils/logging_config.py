"""
Centralized logging configuration for Bookmate.
Provides component-specific loggers with optional separate log files.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Dict, Any

from ..config import get_config


class ComponentLogger:
    """Manages component-specific logging with separate files."""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized = False
    _log_dir: Optional[Path] = None

    # Component definitions with their log levels
    COMPONENTS = {
        'database': {'level': logging.INFO, 'file': 'database.log'},
        'engine': {'level': logging.INFO, 'file': 'engine.log'},
        'notifications': {'level': logging.INFO, 'file': 'notifications.log'},
        'main': {'level': logging.INFO, 'file': 'main.log'},
        'error': {'level': logging.ERROR, 'file': 'errors.log'},  # Centralized error log
    }

    DETAILED_FORMAT = (
        '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - '
        '%(funcName)s() - %(message)s'
    )

    @classmethod
    def initialize(cls, log_dir: Optional[str] = None, debug: bool = False) -> None:
        """
        Initialize the logging system with component-specific loggers.

        Without file logging enabled the component loggers propagate to the
        root logger, so the host application decides where records go.

        Args:
            log_dir: Directory for log files. Enables file logging when given.
            debug: Enable debug logging for all components
        """
        if cls._initialized:
            return

        config = get_config()
        debug = debug or config.app.log_level.upper() == "DEBUG"

        to_file = bool(log_dir) or config.app.log_to_file
        if to_file:
            cls._log_dir = Path(log_dir or config.app.log_dir)
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        detailed_formatter = logging.Formatter(
            cls.DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'
        )

        for component_name, component_config in cls.COMPONENTS.items():
            logger = logging.getLogger(f"bookmate.{component_name}")
            level = logging.DEBUG if debug else component_config['level']
            logger.setLevel(level)

            if to_file:
                logger.handlers.clear()
                file_handler = logging.handlers.RotatingFileHandler(
                    cls._log_dir / component_config['file'],
                    maxBytes=10 * 1024 * 1024,  # 10MB
                    backupCount=5,
                    encoding='utf-8'
                )
                file_handler.setLevel(level)
                file_handler.setFormatter(detailed_formatter)
                logger.addHandler(file_handler)

            cls._loggers[component_name] = logger

        cls._initialized = True

        cls._loggers['main'].debug(
            "Bookmate logging initialized (debug=%s, log_dir=%s)", debug, cls._log_dir
        )

    @classmethod
    def get_logger(cls, component: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            component: Component name (database, engine, notifications, ...)
                      or a module path like 'bookmate.store.registry'

        Returns:
            Logger instance for the component
        """
        if not cls._initialized:
            cls.initialize()

        if component.startswith('bookmate.'):
            parts = component.split('.')
            if parts[1] in ('db', 'repositories'):
                component = 'database'
            elif parts[-1] == 'notifications':
                component = 'notifications'
            elif parts[1] == 'store':
                component = 'engine'
            else:
                component = 'main'

        if component not in cls._loggers:
            logger = logging.getLogger(f"bookmate.{component}")
            logger.setLevel(cls._loggers['main'].level)
            cls._loggers[component] = logger

        return cls._loggers[component]

    @classmethod
    def log_exception(cls, component: str, exc: Exception, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Log an exception with context to both component and error logs.

        Args:
            component: Component where the exception occurred
            exc: The exception to log
            context: Additional context information
        """
        component_logger = cls.get_logger(component)
        error_logger = cls.get_logger('error')

        context_str = ""
        if context:
            context_str = " | Context: " + ", ".join(f"{k}={v}" for k, v in context.items())

        component_logger.error(
            f"Exception in {component}: {type(exc).__name__}: {exc}{context_str}", exc_info=exc
        )
        error_logger.error(f"[{component}] {type(exc).__name__}: {exc}{context_str}", exc_info=exc)


# Convenience functions
def get_logger(component: str) -> logging.Logger:
    """Get a logger for a specific component."""
    return ComponentLogger.get_logger(component)


def log_exception(component: str, exc: Exception, context: Optional[Dict[str, Any]] = None) -> None:
    """Log an exception with context."""
    ComponentLogger.log_exception(component, exc, context)
