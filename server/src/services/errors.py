from __future__ import annotations

from typing import Any, Optional

from ..models import PollOutcome


class UpstreamError(Exception):
    """Base for every failure a poll cycle can classify.

    Carries the internal outcome tag and the status code the cycle publishes.
    These never leave the poll service.
    """

    outcome: PollOutcome = PollOutcome.FETCH_ERROR
    computed_status: int = 503

    def __init__(self, message: str, *, outcome: Optional[PollOutcome] = None, computed_status: Optional[int] = None) -> None:
        super().__init__(message)
        if outcome is not None:
            self.outcome = outcome
        if computed_status is not None:
            self.computed_status = computed_status


class TransportError(UpstreamError):
    """Timeout, network failure or an unreadable response body."""

    def __init__(self, message: str, *, http_status: Optional[int] = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class UpstreamHttpError(UpstreamError):
    """The status RPC answered with a non-200 HTTP status."""

    def __init__(self, http_status: int, *, outcome: PollOutcome, computed_status: int) -> None:
        super().__init__(f"Upstream returned HTTP {http_status}", outcome=outcome, computed_status=computed_status)
        self.http_status = http_status


class RpcProtocolError(UpstreamError):
    """The JSON-RPC response carried an `error` member."""

    outcome = PollOutcome.RPC_ERROR
    computed_status = 502

    def __init__(self, error: Any) -> None:
        super().__init__(f"JSON-RPC error: {error!r}")
        self.error = error


class MalformedResultError(UpstreamError):
    """The JSON-RPC `result` member is absent or not an object."""

    outcome = PollOutcome.INVALID_RESULT
    computed_status = 502

    def __init__(self, message: str = "Invalid or missing result") -> None:
        super().__init__(message)
        self.error = {"message": message}
