"""Error taxonomy shared by the pipeline and the HTTP layer.

Each error carries the HTTP status it maps to. Nothing in the pipeline retries;
every error is terminal for the request that raised it.
"""

from __future__ import annotations


class SidekickError(Exception):
    """Base exception for sidekick-server errors."""

    status_code = 500


class ConfigurationError(SidekickError):
    """Raised when required credentials are missing or unusable."""

    status_code = 500


class ValidationError(SidekickError):
    """Raised when request input is missing, malformed or unsupported."""

    status_code = 400


class UpstreamError(SidekickError):
    """Raised when a remote API (IMS, Firefly, Google) fails.

    The message includes the upstream status and response body for diagnosis.
    """

    status_code = 500

    def __init__(self, message: str, upstream_status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body
