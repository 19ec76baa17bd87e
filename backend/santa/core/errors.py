"""API error classes.

Every failure a caller can observe is one of the classes below. Each carries
a machine-readable code, a human-readable message, an HTTP status, and only
the structured details a client needs to self-correct (attempts remaining,
seconds until retry). Free-text diagnostics go to the logs, never here.
"""


class APIError(Exception):
    """Base class for API errors.

    All API errors have a code, message, and HTTP status.
    Subclasses set default status_code.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Missing or invalid bearer credential (401).

    Use for a wrong admin token, view token or site admin session.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404).

    Use when the requested game, participant or verification request
    doesn't exist.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


class InvalidStateError(APIError):
    """Business rule violation (422).

    Use when a request is syntactically valid but the resource is in the
    wrong state, e.g. revealing a match before the draw.
    """

    def __init__(self, message: str) -> None:
        super().__init__(
            code="INVALID_STATE_TRANSITION",
            message=message,
            status_code=422,
        )


# =============================================================================
# Email verification
# =============================================================================


class ExpiredError(APIError):
    """Verification request is past its time-to-live (410)."""

    def __init__(self) -> None:
        super().__init__(
            code="VERIFICATION_EXPIRED",
            message="Verification code expired. Request a new code.",
            status_code=410,
        )


class LockedError(APIError):
    """Verification request hit the failed-attempt limit (423).

    Terminal for the current code: even the correct code is refused until
    a resend issues a new one.
    """

    def __init__(self) -> None:
        super().__init__(
            code="VERIFICATION_LOCKED",
            message="Maximum number of attempts exceeded. Request a new code.",
            status_code=423,
            details=[{"attempts_remaining": 0}],
        )


class IncorrectCodeError(APIError):
    """Submitted verification code did not match (400).

    Args:
        attempts_remaining: Failed attempts left before the request locks.
    """

    def __init__(self, attempts_remaining: int) -> None:
        self.attempts_remaining = attempts_remaining
        super().__init__(
            code="INCORRECT_CODE",
            message=f"Incorrect code. {attempts_remaining} attempts remaining.",
            status_code=400,
            details=[{"attempts_remaining": attempts_remaining}],
        )


class AlreadyConsumedError(APIError):
    """Single-use resource was already spent (409)."""

    def __init__(
        self,
        message: str = "This verification has already been used",
        code: str = "ALREADY_CONSUMED",
    ) -> None:
        super().__init__(
            code=code,
            message=message,
            status_code=409,
        )


class AlreadyDrawnError(AlreadyConsumedError):
    """Draw was requested for a game that has already been drawn (409)."""

    def __init__(self) -> None:
        super().__init__(
            message="The draw has already been performed for this game",
            code="ALREADY_DRAWN",
        )


# =============================================================================
# Rate limits
# =============================================================================


class CooldownActiveError(APIError):
    """Action repeated before its cooldown elapsed (429).

    Args:
        retry_after_seconds: Whole seconds until the action is allowed again.
    """

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            code="COOLDOWN_ACTIVE",
            message=f"Please wait {retry_after_seconds} seconds before trying again.",
            status_code=429,
            details=[{"retry_after_seconds": retry_after_seconds}],
        )


class ResendLimitError(APIError):
    """Lifetime resend allowance exhausted (429).

    Args:
        limit: The lifetime allowance that was reached.
    """

    def __init__(self, limit: int) -> None:
        super().__init__(
            code="RESEND_LIMIT_REACHED",
            message=f"Resend limit of {limit} reached.",
            status_code=429,
            details=[{"limit": limit}],
        )


class TooManyRequestsError(APIError):
    """Too many verification requests for one email address (429)."""

    def __init__(
        self, message: str = "Too many verification attempts. Try again in 1 hour."
    ) -> None:
        super().__init__(
            code="TOO_MANY_REQUESTS",
            message=message,
            status_code=429,
        )


# =============================================================================
# Games and draws
# =============================================================================


class InsufficientParticipantsError(APIError):
    """Draw needs at least two participants (422).

    Args:
        participant_count: Number of participants supplied.
        minimum: Minimum required for a derangement to exist.
    """

    def __init__(self, participant_count: int, minimum: int = 2) -> None:
        super().__init__(
            code="INSUFFICIENT_PARTICIPANTS",
            message=f"At least {minimum} participants are needed for the draw",
            status_code=422,
            details=[{"participant_count": participant_count, "minimum": minimum}],
        )


class ParticipantLimitError(APIError):
    """Game already holds the maximum number of participants (422)."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            code="PARTICIPANT_LIMIT_REACHED",
            message=f"Maximum of {limit} participants reached",
            status_code=422,
            details=[{"limit": limit}],
        )


# =============================================================================
# Delivery
# =============================================================================


class DeliveryError(APIError):
    """Notification could not be delivered (502).

    The underlying state is already persisted, so the caller can offer a
    resend path. ``resource_id`` identifies what to resend (e.g. the
    verification request id).

    Args:
        message: Client-facing description.
        resource_id: Optional id of the resource the message was about.
    """

    def __init__(
        self,
        message: str = "Failed to send email",
        resource_id: str | None = None,
        *,
        code: str = "DELIVERY_FAILED",
        status_code: int = 502,
    ) -> None:
        details = [{"resource_id": resource_id}] if resource_id else None
        super().__init__(
            code=code,
            message=message,
            status_code=status_code,
            details=details,
        )


class DeliveryTimeoutError(DeliveryError):
    """Email provider did not answer in time (504)."""

    def __init__(
        self,
        message: str = "Timed out sending email",
        resource_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            resource_id,
            code="DELIVERY_TIMEOUT",
            status_code=504,
        )


# =============================================================================
# Internal
# =============================================================================


class InternalInvariantError(APIError):
    """A should-never-happen condition (500).

    Signals a broken dependency (non-random shuffle, corrupted rows).
    Never retried automatically. The message is generic; the cause is logged.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
        )
