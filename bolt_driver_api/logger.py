# bolt_driver_api/logger.py

import logging
import os
import re
from dataclasses import dataclass, replace
from typing import Optional

ROOT_LOGGER_NAME = 'bolt_driver'

LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'

_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warn': logging.WARNING,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}

_BEARER = re.compile(r'(Bearer\s+)[\w\-.]+', re.IGNORECASE)
_SECRET_KEYS = ('token', 'refresh_token', 'access_token', 'verification_token',
                'verification_code', 'Authorization')


@dataclass(frozen=True)
class LoggingConfig:
    enabled: bool = True
    level: str = 'info'
    log_requests: bool = True
    log_responses: bool = False
    log_errors: bool = True
    log_to_file: bool = False
    log_file_path: Optional[str] = None

    def __post_init__(self):
        if self.level not in _LEVELS:
            raise ValueError(f"Unknown log level: {self.level}")

    @property
    def file_path(self):
        return self.log_file_path or os.path.join(os.getcwd(), 'bolt-api.log')


def mask(value, visible=3):
    """Keep the first ``visible`` characters of a sensitive value"""
    if not value:
        return value
    value = str(value)
    return value[:visible] + '***'


def redact(data):
    """Return a copy of request/response data safe to write to logs"""
    if isinstance(data, dict):
        return {k: (mask(v, 6) if k in _SECRET_KEYS and v else redact(v)) for k, v in data.items()}
    if isinstance(data, list):
        return [redact(item) for item in data]
    if isinstance(data, str):
        return _BEARER.sub(r'\1***', data)
    return data


def setup_logging(config=None):
    """
    Configure the ``bolt_driver`` logger hierarchy

    Replaces handlers previously installed by this function, so it can be
    called again after a configuration change.

    Args:
        config (LoggingConfig, optional): Logging settings

    Returns:
        logging.Logger: The package root logger
    """
    config = config or LoggingConfig()
    root = logging.getLogger(ROOT_LOGGER_NAME)

    for handler in list(root.handlers):
        if getattr(handler, '_bolt_driver_handler', False):
            root.removeHandler(handler)
            handler.close()

    if not config.enabled:
        root.setLevel(logging.CRITICAL + 1)
        return root

    root.setLevel(_LEVELS[config.level])
    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console._bolt_driver_handler = True
    root.addHandler(console)

    if config.log_to_file:
        file_handler = logging.FileHandler(config.file_path, encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler._bolt_driver_handler = True
        root.addHandler(file_handler)

    return root


class RequestLogger:
    """
    Logs HTTP traffic of one client according to a LoggingConfig
    """

    def __init__(self, config=None, name='http'):
        self.config = config or LoggingConfig()
        self.logger = logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
        setup_logging(self.config)

    def update_config(self, **changes):
        """Apply partial changes, e.g. ``update_config(log_responses=True)``"""
        self.config = replace(self.config, **changes)
        setup_logging(self.config)
        return self.config

    def log_request(self, method, url, data=None):
        if self.config.enabled and self.config.log_requests:
            if data:
                self.logger.info(f"-> {method} {url} {redact(data)}")
            else:
                self.logger.info(f"-> {method} {url}")

    def log_response(self, method, url, data=None, duration_ms=None):
        if self.config.enabled and self.config.log_responses:
            duration = f" ({duration_ms}ms)" if duration_ms is not None else ''
            self.logger.info(f"<- {method} {url}{duration} {redact(data)}")

    def log_error(self, method, url, error, duration_ms=None):
        if self.config.enabled and self.config.log_errors:
            duration = f" ({duration_ms}ms)" if duration_ms is not None else ''
            self.logger.error(f"x {method} {url}{duration}: {error}")
