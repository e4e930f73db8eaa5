import logging
import time

from pythonjsonlogger import jsonlogger

from .config import Settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure the root logger for the application."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Create JSON formatter for structured logging
    class CustomJsonFormatter(jsonlogger.JsonFormatter):
        def add_fields(self, log_record, record, message_dict):
            super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)
            log_record['service'] = settings.service_name
            log_record['environment'] = settings.environment
            log_record['timestamp'] = time.strftime(
                '%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)
            )

    handler = logging.StreamHandler()
    if settings.log_format.lower() == "json":
        handler.setFormatter(CustomJsonFormatter('%(timestamp)s %(levelname)s %(service)s %(environment)s %(name)s %(message)s'))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    root_logger.addHandler(handler)

    # Set specific logger levels
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('google').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)


def mask_token(token: str) -> str:
    """Shorten a device token so it can be logged."""
    if not token:
        return ''
    return f"{token[:8]}..."
