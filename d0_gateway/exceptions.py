"""
Gateway-specific exceptions
"""
from core.exceptions import UpstreamUnavailableError


class SourceError(UpstreamUnavailableError):
    """A record source, settings store or file host could not serve a request"""

    def __init__(self, source: str, message: str, status_code: int = None, **details):
        self.source = source
        self.status_code = status_code
        super().__init__(upstream=source, message=message, status_code=status_code, **details)
