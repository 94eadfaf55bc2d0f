"""
Logging configuration for the monitor replicator, with optional structured file logging.
"""
import copy
import logging
import logging.config
import logging.handlers
import json
import os
from datetime import datetime, timezone
from typing import Dict, Optional
import threading


# Attributes every LogRecord has; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset([
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'getMessage', 'exc_info', 'exc_text', 'stack_info'
])


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'thread': record.threadName or threading.get_ident()
        }

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        # Add extra fields, e.g. the replicated command name
        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES and not key.startswith('_'):
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class LoggingConfig:
    """Centralized logging configuration for the replicator."""

    LOG_FILE = 'redis_replicator.log'

    DEFAULT_CONFIG = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'structured': {
                '()': StructuredFormatter,
            },
            'simple': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'formatter': 'simple',
                'level': 'INFO'
            },
            'file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'filename': LOG_FILE,
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'formatter': 'structured',
                'level': 'DEBUG'
            }
        },
        'loggers': {
            'redis_replicator': {
                'level': 'INFO',
                'handlers': ['console', 'file'],
                'propagate': False
            }
        },
        'root': {
            'level': 'WARNING',
            'handlers': ['console']
        }
    }

    @classmethod
    def setup_logging(cls, config: Optional[Dict] = None, log_dir: Optional[str] = None,
                      level: str = 'INFO'):
        """
        Setup logging configuration.

        Args:
            config: dictConfig dictionary, defaults to DEFAULT_CONFIG
            log_dir: Directory for the JSON log file; console only when None
            level: Level of the ``redis_replicator`` logger
        """
        if config is None:
            config = copy.deepcopy(cls.DEFAULT_CONFIG)

        if log_dir is None:
            config['handlers'].pop('file', None)
            for logger_config in config.get('loggers', {}).values():
                logger_config['handlers'] = [h for h in logger_config['handlers'] if h != 'file']
        else:
            os.makedirs(log_dir, exist_ok=True)
            config['handlers']['file']['filename'] = os.path.join(log_dir, cls.LOG_FILE)

        if 'redis_replicator' in config.get('loggers', {}):
            config['loggers']['redis_replicator']['level'] = level

        logging.config.dictConfig(config)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger with the specified name."""
        return logging.getLogger(f"redis_replicator.{name}")
