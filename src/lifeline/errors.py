"""Full error hierarchy for lifeline.

Every error raised by the pipeline inherits from LifelineError. Each carries a
machine-readable ``code`` (from :class:`ErrorCode`), a human-readable
``message``, an optional structured ``context`` dict, and an optional
``cause`` (chained exception).

Errors fall into two families:

* **API errors** are raised by the Notion transport and map one-to-one onto
  HTTP failure classes.
* **Pipeline errors** are raised by the snapshot, diff, restore and audit
  jobs.  A pipeline error that escapes a worker aborts the job and is
  recorded on the job's durable status record.

Error codes are defined as a :class:`str` enum so that they serialise
naturally to JSON and can be matched with simple ``==`` comparisons.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Error code enum
# ---------------------------------------------------------------------------

class ErrorCode(str, Enum):
    """Machine-readable error codes for every error lifeline can raise."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    PERMISSION_ERROR = "PERMISSION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    RETRY_EXHAUSTED = "RETRY_EXHAUSTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    CREDENTIAL_MISSING = "CREDENTIAL_MISSING"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    ARCHIVE_NOT_FOUND = "ARCHIVE_NOT_FOUND"
    MANIFEST_ERROR = "MANIFEST_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    JOB_PAYLOAD_ERROR = "JOB_PAYLOAD_ERROR"
    INVALID_TRANSITION = "INVALID_TRANSITION"


# ---------------------------------------------------------------------------
# Base error
# ---------------------------------------------------------------------------

class LifelineError(Exception):
    """Base exception for all lifeline errors.

    Parameters
    ----------
    code:
        A value from :class:`ErrorCode` (or any string) identifying the
        error category.
    message:
        A developer-friendly description of what went wrong.
    context:
        Arbitrary structured data providing extra diagnostic detail.
        Keys and expected types are documented per subclass.
    cause:
        The underlying exception, if this error wraps another.
    """

    def __init__(
        self,
        code: str,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.code: str = code
        self.message: str = message
        self.context: dict[str, Any] = context or {}
        self.cause: Exception | None = cause
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        ctx = f", context={self.context!r}" if self.context else ""
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}{ctx})"


class _CodedError(LifelineError):
    """Shared constructor for subclasses with a fixed error code."""

    _code: ErrorCode = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            code=self._code,
            message=message,
            context=context,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# API / transport errors
# ---------------------------------------------------------------------------

class LifelineValidationError(_CodedError):
    """Notion API returned 400 -- the request payload was invalid.

    Context keys: ``status_code``, ``notion_code``, ``body``.
    """

    _code = ErrorCode.VALIDATION_ERROR


class LifelineAuthError(_CodedError):
    """Notion API returned 401 -- the access token is invalid or expired.

    Auth failures are fatal for the whole job: a restore or walk stops at
    the first one instead of counting it as a single-item failure.
    """

    _code = ErrorCode.AUTH_ERROR


class LifelinePermissionError(_CodedError):
    """Notion API returned 403 -- the integration lacks access to the resource.

    Context keys: ``operation``.
    """

    _code = ErrorCode.PERMISSION_ERROR


class LifelineNotFoundError(_CodedError):
    """Notion API returned 404 -- the requested resource does not exist.

    Context keys: ``path``.
    """

    _code = ErrorCode.NOT_FOUND


class LifelineConflictError(_CodedError):
    """Notion API returned 409 -- a concurrent edit conflicted with the write."""

    _code = ErrorCode.CONFLICT


class LifelineRetryExhaustedError(_CodedError):
    """All retry attempts have been exhausted for a retryable request.

    Context keys: ``attempts``, ``last_status_code``.
    """

    _code = ErrorCode.RETRY_EXHAUSTED


class LifelineNetworkError(_CodedError):
    """A transport-level failure occurred (timeout, DNS, connection reset).

    Context keys: ``url``, ``attempt``.
    """

    _code = ErrorCode.NETWORK_ERROR


# ---------------------------------------------------------------------------
# Pipeline errors
# ---------------------------------------------------------------------------

class LifelineCredentialError(_CodedError):
    """No Notion access token is stored for the user.

    Context keys: ``user_id``.
    """

    _code = ErrorCode.CREDENTIAL_MISSING


class LifelineConfigurationError(_CodedError):
    """A required setting is absent or a destination config is unusable.

    Context keys: ``setting`` or ``destination_id``.
    """

    _code = ErrorCode.CONFIGURATION_ERROR


class LifelineArchiveNotFoundError(_CodedError):
    """The archive or manifest is not at its expected storage path.

    Context keys: ``path``, ``destination``.
    """

    _code = ErrorCode.ARCHIVE_NOT_FOUND


class LifelineManifestError(_CodedError):
    """A stored archive or manifest could not be decompressed or parsed.

    Context keys: ``path``.
    """

    _code = ErrorCode.MANIFEST_ERROR


class LifelineStorageError(_CodedError):
    """An object-store read or write failed.

    Context keys: ``path``, ``destination``.
    """

    _code = ErrorCode.STORAGE_ERROR


class LifelineJobPayloadError(_CodedError):
    """A job trigger message is malformed or missing required fields.

    Context keys: ``field``, ``job_type``.
    """

    _code = ErrorCode.JOB_PAYLOAD_ERROR


class LifelineInvalidTransitionError(_CodedError):
    """A job status change would move backwards or leave a terminal state.

    Context keys: ``from_status``, ``to_status``.
    """

    _code = ErrorCode.INVALID_TRANSITION
