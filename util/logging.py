"""
Structured logging for roster console operations.
Wraps stdlib logging with operation-style records and payload redaction.
"""

import logging
import os
from typing import Any, Dict, List

# Fields that never reach a log line verbatim
SENSITIVE_FIELDS = ['password', 'password_confirmation', 'token', 'secret', 'avatar']


class StructuredLogger:
    """Structured logger for roster, lock, form and preview operations."""

    def __init__(self, name: str = "roster_console"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("rejected", "invalid"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_roster_action(self, area: str, action: str, record_id: Any = None,
                          status: str = "success", details: Dict[str, Any] = None):
        """Log a mutating roster action (create/update/status/delete/refresh)."""
        log_details = {"area": area}
        if record_id is not None:
            log_details["record_id"] = record_id
        if details:
            log_details.update(details)

        self.log_operation(f"roster.{action}", status, log_details)

    def log_lock_event(self, event: str, record_id: Any = None, holder: Any = None):
        """Log action-lock transitions."""
        log_details = {"record_id": record_id}
        if holder is not None:
            log_details["holder"] = holder
        status = "rejected" if event == "rejected" else "success"
        self.log_operation(f"lock.{event}", status, log_details)

    def log_validation_errors(self, area: str, errors: Dict[str, str], record_id: Any = None):
        """Log field validation failures; only field names and messages are kept."""
        log_details = {
            "area": area,
            "fields": sorted(errors.keys()),
            "error_count": len(errors),
        }
        if record_id is not None:
            log_details["record_id"] = record_id
        self.log_operation("form.validation", "invalid", log_details)

    def log_preview_event(self, event: str, handle: str):
        """Log preview handle acquisition and release."""
        self.log_operation(f"preview.{event}", "success", {"handle": handle})

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None,
                sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
