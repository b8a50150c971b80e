"""
Structured logging for the service: structlog JSON lines on top of stdlib
logging, tagged with the service name and deployment environment.
"""
import logging
import sys

import structlog


def service_context(service_name: str, environment: str):
    """Processor that stamps every entry with where it came from."""

    def add_service_context(logger, method_name, event_dict):
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service_context


def configure_logging(level: str = "INFO", service_name: str = "marketplace",
                      environment: str = "development"):
    numeric_level = getattr(logging, level, logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            service_context(service_name, environment),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__):
    return structlog.get_logger(name)
