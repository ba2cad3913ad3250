"""Custom exception classes for the application."""


class AppError(Exception):
    """Base application error class."""

    code = "app_error"

    def __init__(self, message, status_code=400):
        """Initialize the error."""
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_dict(self):
        """Serialize the error for a JSON response."""
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(AppError):
    """Raised when user input fails validation."""

    code = "validation_error"

    def __init__(self, message="Validation failed."):
        """Initialize the error."""
        super().__init__(message, 400)


class DuplicateResourceError(AppError):
    """Raised when trying to create a resource that already exists."""

    code = "duplicate_resource"

    def __init__(self, message="Resource already exists."):
        """Initialize the error."""
        super().__init__(message, 409)


class NotFoundError(AppError):
    """Raised when a resource is not found."""

    code = "not_found"

    def __init__(self, message="Resource not found."):
        """Initialize the error."""
        super().__init__(message, 404)


class TournamentNotFound(NotFoundError):
    code = "tournament_not_found"

    def __init__(self, message="Tournament not found."):
        super().__init__(message)


class MatchNotFound(NotFoundError):
    code = "match_not_found"

    def __init__(self, message="Match not found."):
        super().__init__(message)


class RegistrationNotFound(NotFoundError):
    code = "registration_not_found"

    def __init__(self, message="Registration not found."):
        super().__init__(message)


class InsufficientParticipants(ValidationError):
    """Raised when a bracket is requested for fewer than two participants."""

    code = "insufficient_participants"

    def __init__(
        self,
        message="At least 2 approved registrations are required to generate fixtures.",
    ):
        """Initialize the error."""
        super().__init__(message)


class ParticipantsIncomplete(ValidationError):
    """Raised when a result is recorded against a match with a TBD slot."""

    code = "participants_incomplete"

    def __init__(self, message="Both participants must be set before recording a result."):
        """Initialize the error."""
        super().__init__(message)


class DuplicateParticipantSlot(ValidationError):
    """Raised when both slots of a match would hold the same participant."""

    code = "duplicate_participant_slot"

    def __init__(self, message="Participants must be different."):
        """Initialize the error."""
        super().__init__(message)


class InvalidResult(ValidationError):
    """Raised when a submitted result cannot be applied to a match."""

    code = "invalid_result"


class RegistrationClosed(ValidationError):
    code = "registration_closed"

    def __init__(self, message="Registration is not open for this tournament."):
        super().__init__(message)


class CapacityExceeded(AppError):
    """Raised when an action would push occupancy past maxParticipants."""

    code = "capacity_exceeded"

    def __init__(self, message="Tournament is full."):
        """Initialize the error."""
        super().__init__(message, 409)


class ResultAlreadyRecorded(AppError):
    code = "result_already_recorded"

    def __init__(
        self,
        message="A result is already recorded for this match. Submit it as a correction.",
    ):
        super().__init__(message, 409)


class RegenerationNotConfirmed(AppError):
    code = "regeneration_not_confirmed"

    def __init__(
        self,
        message="Matches have already been played. Confirm to regenerate the bracket.",
    ):
        super().__init__(message, 409)


class ProgressionConflict(AppError):
    """Raised when a winner cannot be placed without overwriting another slot.

    The triggering result stays committed; the conflict needs manual
    reconciliation by the organizer.
    """

    code = "progression_conflict"

    def __init__(self, message="Winner progression conflicts with the next match."):
        """Initialize the error."""
        super().__init__(message, 409)


class BracketConfigurationError(AppError):
    """Raised when a bracket is missing the links progression relies on."""

    code = "bracket_configuration_error"

    def __init__(self, message="The bracket is missing a forward link."):
        """Initialize the error."""
        super().__init__(message, 500)


class LockTimeout(AppError):
    code = "lock_timeout"

    def __init__(self, message="The tournament is busy. Please try again."):
        super().__init__(message, 503)
