"""Exception hierarchy for axmtoken.

All exceptions inherit from :class:`AxmTokenError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`axmtoken.exit_codes`.
The top-level error handler in :func:`axmtoken.app.main` catches
``AxmTokenError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Each core component raises its own family of errors. The lifecycle
manager re-wraps them into the smaller caller-facing
:class:`TokenServiceError` family so that commands never need to know
component internals.

Subclass hierarchy::

    AxmTokenError (exit 1)
    +-- InvalidUsageError            (exit 2)
    +-- ConfigError                  (exit 1)
    +-- ConfigurationNotFoundError   (exit 4)
    +-- KeyFormatError               (exit 7)
    +-- SigningError                 (exit 7)
    +-- AssertionDecodeError         (exit 2)
    +-- VaultError                   (exit 8)
    |   +-- VaultNotFoundError
    |   +-- VaultDuplicateError
    |   +-- VaultInvalidFormatError
    |   +-- VaultUnexpectedStatusError
    +-- ExchangeError                (exit 6)
    |   +-- InvalidURLError
    |   +-- NoDataError
    |   +-- DecodingError
    |   +-- InvalidResponseError
    |   +-- NetworkError
    |   +-- HttpStatusError          (exit 3 / 4 / 5 by status)
    |       +-- TokenRejectedError
    +-- TokenServiceError
        +-- CredentialsInvalidError  (exit 3)
        +-- StorageFailureError      (exit 8)
        +-- SigningFailureError      (exit 7)
        +-- ExchangeFailureError     (exit of the wrapped error)
"""

from __future__ import annotations

from typing import Optional

from axmtoken.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_KEY_ERROR,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_STORAGE_ERROR,
)


class AxmTokenError(Exception):
    """Base exception for all axmtoken errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`axmtoken.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(AxmTokenError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(AxmTokenError):
    """Raised for configuration problems (invalid JSON, unreadable files)."""

    exit_code = EXIT_GENERIC_FAILURE


class ConfigurationNotFoundError(AxmTokenError):
    """Raised when no token configuration matches a name or identifier."""

    exit_code = EXIT_NOT_FOUND


# --- Key material and signing ---


class KeyFormatError(AxmTokenError):
    """Raised when key bytes cannot be read as a P-256 private key.

    Attributes:
        reasons: One ``(decoder_name, reason)`` pair per decoder that was
            attempted, in the order they ran.
    """

    exit_code = EXIT_KEY_ERROR

    def __init__(self, message: str, reasons: Optional[list[tuple[str, str]]] = None):
        self.reasons = list(reasons or [])
        if self.reasons:
            details = "; ".join(f"{name}: {reason}" for name, reason in self.reasons)
            message = f"{message} ({details})"
        super().__init__(message)


class SigningError(AxmTokenError):
    """Raised when the signing primitive rejects the key or the input."""

    exit_code = EXIT_KEY_ERROR


class AssertionDecodeError(AxmTokenError):
    """Raised when a string is not a well-formed compact JWT."""

    exit_code = EXIT_INVALID_USAGE


# --- Vault ---


class VaultError(AxmTokenError):
    """Base class for secret-vault failures."""

    exit_code = EXIT_STORAGE_ERROR


class VaultNotFoundError(VaultError):
    """Raised by ``get`` when no value is stored for ``(subject_id, purpose)``."""

    def __init__(self, subject_id: str, purpose: str):
        self.subject_id = subject_id
        self.purpose = purpose
        super().__init__(f"No {purpose} stored for {subject_id}")


class VaultDuplicateError(VaultError):
    """Raised by a backend's add step when the entry already exists.

    :meth:`~axmtoken.vault.base.CredentialVault.put` catches this and
    updates the entry in place, so callers never observe it.
    """


class VaultInvalidFormatError(VaultError):
    """Raised for malformed subject ids, unknown purposes, or unreadable values."""


class VaultUnexpectedStatusError(VaultError):
    """Raised when the storage backend reports an unexpected status.

    Attributes:
        code: The backend status code (``errno`` for the file backend).
    """

    def __init__(self, code: int, message: str | None = None):
        self.code = code
        super().__init__(message or f"Unexpected vault status {code}")


# --- Token exchange ---


class ExchangeError(AxmTokenError):
    """Base class for HTTP exchange failures."""

    exit_code = EXIT_CONNECTION_ERROR


class InvalidURLError(ExchangeError):
    """Raised when the endpoint URL cannot be constructed."""

    exit_code = EXIT_INVALID_USAGE


class NoDataError(ExchangeError):
    """Raised when a successful response has an empty body."""


class DecodingError(ExchangeError):
    """Raised when a successful response body is not the expected JSON."""


class InvalidResponseError(ExchangeError):
    """Raised when the server's reply is not a usable HTTP response."""


class NetworkError(ExchangeError):
    """Raised on transport failures (DNS, TLS, refused connection, timeout).

    Attributes:
        cause: The underlying transport exception.
    """

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Network error: {cause}")


class HttpStatusError(ExchangeError):
    """Raised when the server answers with a non-2xx status.

    Attributes:
        status_code: The HTTP status code.
        detail: The OAuth ``error``/``error_description`` pair or raw body
            text, when the server provided one.
    """

    def __init__(self, status_code: int, detail: str | None = None):
        self.status_code = status_code
        self.detail = detail
        message = f"HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, exit_code=_exit_code_for_status(status_code))


class TokenRejectedError(HttpStatusError):
    """Raised when an API rejects the bearer token as expired or invalid (401)."""


def _exit_code_for_status(status_code: int) -> int:
    if status_code in (401, 403):
        return EXIT_AUTH_FAILURE
    if status_code == 404:
        return EXIT_NOT_FOUND
    if status_code >= 500:
        return EXIT_SERVER_ERROR
    return EXIT_GENERIC_FAILURE


def user_message_for_status(status_code: int) -> str:
    """Return the user-facing explanation for an HTTP failure status."""
    if status_code == 401:
        return "Authentication failed. The token may have expired; refresh it and try again."
    if status_code == 403:
        return "Access denied. The token may not have permission for this resource."
    if status_code == 404:
        return "Endpoint not found. Check the configuration's service type."
    if status_code >= 500:
        return f"Apple server error ({status_code}). Please try again later."
    return f"Request failed with status {status_code}."


# --- Caller-facing lifecycle errors ---


class TokenServiceError(AxmTokenError):
    """Base class for errors raised by the token lifecycle manager."""


class CredentialsInvalidError(TokenServiceError):
    """Raised when the private key for a configuration is missing or unusable."""

    exit_code = EXIT_AUTH_FAILURE


class StorageFailureError(TokenServiceError):
    """Raised when the vault fails for a reason other than a missing key."""

    exit_code = EXIT_STORAGE_ERROR


class SigningFailureError(TokenServiceError):
    """Raised when the assertion cannot be built from the stored key."""

    exit_code = EXIT_KEY_ERROR


class ExchangeFailureError(TokenServiceError):
    """Raised when the token exchange fails.

    Carries the exit code of the wrapped :class:`ExchangeError` so that a
    401 from Apple still exits with :data:`EXIT_AUTH_FAILURE`.
    """

    def __init__(self, message: str, cause: ExchangeError):
        self.cause = cause
        super().__init__(message, exit_code=cause.exit_code)

    @property
    def status_code(self) -> Optional[int]:
        """The HTTP status of the wrapped error, if it was an HTTP failure."""
        if isinstance(self.cause, HttpStatusError):
            return self.cause.status_code
        return None
