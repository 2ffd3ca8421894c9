from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A required setting or credential is missing or invalid."""


class ApiError(RuntimeError):
    def __init__(self, endpoint: str, status: int | None, detail: str = "") -> None:
        self.endpoint = endpoint
        self.status = status
        self.detail = detail
        message = f"OFAPI error: {endpoint} {status}" if status is not None else f"OFAPI error: {endpoint}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class TransportError(ApiError):
    """The request never produced an HTTP status (connection failure or timeout)."""

    def __init__(self, endpoint: str, detail: str) -> None:
        super().__init__(endpoint, None, detail)


class ParseError(ValueError):
    pass


class MalformedMessageError(ParseError):
    pass


class InvalidIdentifierError(ParseError):
    pass
