"""Error classes for the routing engine.

Only InvalidRequestError is meant to reach callers of the task boundary.
The others are raised by collaborators and handled locally with a fallback.
"""


class SmartRouteError(Exception):
    """Base error for routing engine operations."""

    pass


class ServiceError(SmartRouteError):
    """An external service (quote, price, liquidity, gas) failed or timed out."""

    pass


class QuoteError(ServiceError):
    """A quote could not be obtained; the edge is infeasible for that amount."""

    pass


class DecodeError(ServiceError):
    """An external payload did not match the expected shape."""

    pass


class InvalidRequestError(SmartRouteError):
    """A task payload was malformed.

    Attributes:
        fields: Names of the missing or invalid fields
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class TaskCancelledError(SmartRouteError):
    """The caller cancelled the task before it was handled."""

    pass
