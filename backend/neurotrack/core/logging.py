"""
Structured logging configuration for NeuroTrack.

Provides consistent, structured logging with support for different
output formats and log levels based on environment.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add application context to log entries."""
    event_dict["app"] = "neurotrack"
    return event_dict


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output logs as JSON (for production)
        log_file: Optional file path for log output
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_app_context,
    ]

    if json_logs:
        processors: list[Processor] = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level.upper(), logging.INFO))
        if json_logs:
            file_handler.setFormatter(logging.Formatter("%(message)s"))
        else:
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog BoundLogger
    """
    return structlog.get_logger(name)


class AuditLogger:
    """
    Specialized logger for the processing audit trail.

    Every automatic change to a scan's status and every access to the
    processing trigger is recorded here, so a scan's history can be
    reconstructed from the logs alone.
    """

    def __init__(self):
        """Initialize audit logger."""
        self.logger = get_logger("audit")

    def log_trigger_access(
        self,
        authorized: bool,
        client_ip: str | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Log a call to the processing trigger.

        Args:
            authorized: Whether the caller passed the shared-secret check
            client_ip: Client IP address
            reason: Rejection reason (if applicable)
        """
        log_method = self.logger.info if authorized else self.logger.warning
        log_method(
            "trigger_access",
            authorized=authorized,
            client_ip=client_ip,
            reason=reason,
            audit_type="access",
        )

    def log_scan_transition(
        self,
        scan_id: str,
        from_status: str,
        to_status: str,
        retry_count: int | None = None,
        error: str | None = None,
        actor: str = "processor",
    ) -> None:
        """
        Log a scan status transition.

        Args:
            scan_id: ID of the scan
            from_status: Status before the transition
            to_status: Status after the transition
            retry_count: Retry counter after the transition
            error: Error message recorded with the transition
            actor: Who caused the transition ("processor" or "operator")
        """
        log_method = self.logger.error if to_status == "failed" else self.logger.info
        log_method(
            "scan_transition",
            scan_id=scan_id,
            from_status=from_status,
            to_status=to_status,
            retry_count=retry_count,
            error=error[:500] if error else None,
            actor=actor,
            audit_type="scan",
        )


# Global audit logger instance
audit_logger = AuditLogger()
