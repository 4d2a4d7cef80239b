#!/usr/bin/env python3
"""Logging configuration"""
import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


def _bool(val: str) -> bool:
    return val.lower() == "true"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: str = ""
    enable_console: bool = True
    enable_structured: bool = False

    # Service identity for logging
    service_name: str = "timeline_service"
    environment: str = "development"

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        """Load logging config from environment variables"""
        env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
        return cls(
            log_level=os.getenv("LOG_LEVEL", "DEBUG" if env == "development" else "INFO"),
            log_format=os.getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("LOG_FILE", ""),
            enable_console=_bool(os.getenv("LOG_CONSOLE", "true")),
            enable_structured=_bool(os.getenv("ENABLE_STRUCTURED_LOGGING", "false")),
            service_name=os.getenv("SERVICE_NAME", "timeline_service"),
            environment=env,
        )


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, service_name: str = "timeline_service", environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "service": self.service_name,
            "environment": self.environment,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


def setup_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Configure the root logger once per process.

    Console output uses the plain format; the optional file handler uses JSON
    when structured logging is enabled.
    """
    config = config or LoggingConfig.from_env()

    root = logging.getLogger()
    root.setLevel(config.log_level.upper())
    root.handlers.clear()

    plain_formatter = logging.Formatter(fmt=config.log_format, datefmt="%Y-%m-%d %H:%M:%S")
    json_formatter = JsonFormatter(config.service_name, config.environment)

    if config.enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(json_formatter if config.enable_structured else plain_formatter)
        root.addHandler(console_handler)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(json_formatter if config.enable_structured else plain_formatter)
        root.addHandler(file_handler)

    logger = logging.getLogger(config.service_name)
    logger.debug(f"Logging initialized ({config.environment}, level={config.log_level})")
    return logger
