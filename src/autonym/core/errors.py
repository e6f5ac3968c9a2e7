"""
Error types for Autonym resources.

Two families live here:

- ConfigurationError: raised while normalizing a resource declaration.
  These surface at startup and are never retried.
- AutonymError: the single error type that leaves a CRUD operation. Any
  value raised by a policy, a store operation or schema validation is
  wrapped into one, and only client errors expose their detail outward.
"""

from __future__ import annotations

from enum import StrEnum
from http import HTTPStatus
from typing import Any

INTERNAL_ERROR_MESSAGE = "An internal server error occurred."
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred."
FORBIDDEN_MESSAGE = "This action may not be performed."


class ConfigurationError(ValueError):
    """
    Raised when a resource declaration is structurally invalid.

    Examples:
    - Missing or empty name
    - Schema that does not describe an object
    - Store operation that is not callable
    - Unrecognized declaration property
    """

    def __init__(self, message: str, parameter: str | None = None):
        self.message = message
        self.parameter = parameter
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.parameter:
            return f"{self.parameter}: {self.message}"
        return self.message


class ErrorCode(StrEnum):
    """Error codes understood by the runtime."""

    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    NOT_ACCEPTABLE = "NOT_ACCEPTABLE"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


CLIENT_ERRORS = frozenset(
    {
        ErrorCode.BAD_REQUEST,
        ErrorCode.FORBIDDEN,
        ErrorCode.NOT_ACCEPTABLE,
        ErrorCode.METHOD_NOT_ALLOWED,
        ErrorCode.NOT_FOUND,
        ErrorCode.UNAUTHORIZED,
    }
)


class AutonymError(Exception):
    """
    Wrapper for any error raised in a policy, schema validation or store call.

    The code may be one of ``ErrorCode`` or any other identifying string.
    Every AutonymError starts out internal; call ``to_client_error()`` to get
    a copy whose message and data may be shown to the caller. Even then,
    only errors whose code is one of ``CLIENT_ERRORS`` expose their detail.

    Example:
        >>> err = AutonymError(ErrorCode.BAD_REQUEST, "Bad input", {"field": "x"})
        >>> err.payload
        {'message': 'An internal server error occurred.'}
        >>> err.to_client_error().payload
        {'field': 'x', 'message': 'Bad input'}
    """

    def __init__(
        self,
        code: str | None,
        message: str,
        data: Any = None,
        *,
        client_error: bool = False,
    ):
        self._code = code or ErrorCode.INTERNAL_SERVER_ERROR
        self._message = message
        self._data = {} if data is None else data
        self._client_error = client_error
        super().__init__(f"[{self._code}] {message}")

    @classmethod
    def from_error(cls, error: BaseException | None) -> AutonymError:
        """
        Wrap the given error, or return it unchanged if it already is an AutonymError.

        A string ``code`` attribute on the error becomes the AutonymError code.
        If the error has a ``to_json()`` (or pydantic ``model_dump()``) method,
        its result is kept as data, otherwise its public attributes are.

        Example:
            >>> AutonymError.from_error(ValueError("Something bad happened")).payload
            {'message': 'An internal server error occurred.'}
        """
        if isinstance(error, AutonymError):
            return error
        if error is None:
            return cls(ErrorCode.INTERNAL_SERVER_ERROR, UNKNOWN_ERROR_MESSAGE)

        code = getattr(error, "code", None)
        if not isinstance(code, str):
            code = None
        message = str(error) or UNKNOWN_ERROR_MESSAGE
        return cls(code, message, _extract_data(error))

    @classmethod
    def forbidden(cls, message: str = FORBIDDEN_MESSAGE) -> AutonymError:
        """Generic denial used when a policy fails without a specific reason."""
        return cls(ErrorCode.FORBIDDEN, message)

    @property
    def code(self) -> str:
        return self._code

    @property
    def message(self) -> str:
        return self._message

    @property
    def data(self) -> Any:
        return self._data

    @property
    def status(self) -> HTTPStatus:
        """HTTP status for the code, falling back to 500 for unknown codes."""
        try:
            return HTTPStatus[str(self._code)]
        except KeyError:
            return HTTPStatus.INTERNAL_SERVER_ERROR

    @property
    def is_client_error(self) -> bool:
        """True if promoted with ``to_client_error()`` and the code is a client code."""
        return self._client_error and self._code in CLIENT_ERRORS

    @property
    def payload(self) -> dict[str, Any]:
        """
        Data that is safe to send to the caller.

        Client errors expose their data and message; everything else collapses
        to a generic message. The full detail stays on the instance.
        """
        if not self.is_client_error:
            return {"message": INTERNAL_ERROR_MESSAGE}
        if isinstance(self._data, dict):
            return {**self._data, "message": self._message}
        return {"data": self._data, "message": self._message}

    def to_client_error(self) -> AutonymError:
        """Return a copy of this error flagged as safe to show to the caller."""
        clone = AutonymError(self._code, self._message, self._data, client_error=True)
        clone.__cause__ = self.__cause__ or self
        return clone

    def __repr__(self) -> str:
        return f"AutonymError(code={self._code!r}, message={self._message!r})"


def _extract_data(error: BaseException) -> Any:
    for attr in ("to_json", "model_dump"):
        method = getattr(error, attr, None)
        if callable(method):
            return method()
    attributes = getattr(error, "__dict__", None) or {}
    return {key: value for key, value in attributes.items() if not key.startswith("_")}
