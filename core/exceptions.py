"""
Custom exceptions for the audit reporting pipeline
Provides structured error handling across all domains
"""
from typing import Any, Dict, Optional


class AuditReportError(Exception):
    """Base exception for all audit reporting errors"""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for result payloads"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class MalformedInputError(AuditReportError):
    """Raised when a raw record cannot be parsed; callers skip the record and continue"""

    def __init__(self, message: str, source: Optional[str] = None, preview: Optional[str] = None, **details):
        super().__init__(
            message=message,
            error_code="MALFORMED_INPUT",
            details={"source": source, "preview": preview, **details},
        )


class UpstreamUnavailableError(AuditReportError):
    """Raised when a record source or settings store cannot be reached"""

    def __init__(self, upstream: str, message: str, **details):
        super().__init__(
            message=f"{upstream} unavailable: {message}",
            error_code="UPSTREAM_UNAVAILABLE",
            details={"upstream": upstream, **details},
        )
        self.upstream = upstream


class FatalInputError(AuditReportError):
    """Raised when report generation cannot start at all (no document identity)"""

    def __init__(self, message: str, **details):
        super().__init__(
            message=message,
            error_code="FATAL_INPUT",
            details=details,
        )


class ConfigurationError(AuditReportError):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, setting: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"setting": setting} if setting else {},
        )
