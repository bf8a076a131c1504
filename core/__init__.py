"""Core utilities and configuration for the audit reporting pipeline"""
from core.config import settings
from core.exceptions import (
    AuditReportError,
    FatalInputError,
    MalformedInputError,
    UpstreamUnavailableError,
)
from core.logging import get_logger

__all__ = [
    "settings",
    "get_logger",
    "AuditReportError",
    "FatalInputError",
    "MalformedInputError",
    "UpstreamUnavailableError",
]
