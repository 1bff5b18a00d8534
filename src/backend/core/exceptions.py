"""
Domain exceptions for activity, poll and voting operations.

Every error carries a human-readable message meant to be shown verbatim,
a stable ``code`` and the HTTP status the API layer responds with.
"""


class ActivityError(Exception):
    """Base exception for activity operations."""

    code = "ActivityError"
    status_code = 400
    default_message = "The request could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================================
# Validation
# ============================================================================


class ActivityValidationError(ActivityError):
    """Malformed or out-of-range input."""

    code = "ValidationError"
    default_message = "Invalid input."


class ConflictingAutomationError(ActivityValidationError):
    """Both auto-delete and auto-archive were requested."""

    code = "ConflictingAutomation"
    default_message = "Choose either auto delete or auto archive, not both."


class TooManyImagesError(ActivityValidationError):
    """More image attachments than allowed."""

    code = "TooManyImages"
    default_message = "You can upload up to five images."


class EmptyRosterError(ActivityValidationError):
    """Voting event without any participants."""

    code = "EmptyRoster"
    default_message = "Voting events require at least one participant."


class InvalidPriceError(ActivityValidationError):
    """Vote price that is negative or not a finite number."""

    code = "InvalidPrice"
    default_message = "Vote prices must be zero or greater."


# ============================================================================
# Access
# ============================================================================


class UnauthorizedError(ActivityError):
    """No authenticated principal."""

    code = "Unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ActivityError):
    """Referenced activity does not exist."""

    code = "NotFound"
    status_code = 404
    default_message = "Activity not found"


class PollNotFoundError(NotFoundError):
    """Activity is missing or is not a poll."""

    default_message = "Poll not found."


class VotingEventNotFoundError(NotFoundError):
    """Activity is missing or is not a voting event."""

    default_message = "Voting event not found."


# ============================================================================
# Poll voting
# ============================================================================


class PollClosedError(ActivityError):
    """Poll close time has passed."""

    code = "PollClosed"
    status_code = 409
    default_message = "This poll has closed."


class PollArchivedError(ActivityError):
    """Poll is archived and read-only."""

    code = "PollArchived"
    status_code = 409
    default_message = "This poll is archived and read-only."


class AdditionalOptionsNotAllowedError(ActivityError):
    """Voter tried to add an option to a closed option list."""

    code = "AdditionalOptionsNotAllowed"
    default_message = "Adding options is not allowed for this poll."


class NoSelectionError(ActivityError):
    """Vote without any selection."""

    code = "NoSelection"
    default_message = "Select at least one option."


class TooManySelectionsError(ActivityError):
    """Vote with more selections than the poll allows."""

    code = "TooManySelections"
    default_message = "Too many options selected."


class InvalidOptionError(ActivityError):
    """Selection that is not one of the poll's options."""

    code = "InvalidOption"
    default_message = "Selected option is not available."


# ============================================================================
# Vote ledger
# ============================================================================


class ParticipantNotFoundError(ActivityError):
    """Adjustment for a user outside the roster snapshot."""

    code = "ParticipantNotFound"
    status_code = 404
    default_message = "Participant not found."


class InsufficientVotesError(ActivityError):
    """Removal larger than the participant's balance."""

    code = "InsufficientVotes"
    status_code = 409
    default_message = "Cannot remove more votes than the participant has."


# ============================================================================
# Storage
# ============================================================================


class ConcurrencyConflictError(ActivityError):
    """A conditional write lost against a concurrent writer."""

    code = "ConcurrencyConflict"
    status_code = 409
    default_message = "The activity was changed by someone else. Please retry."


class RosterUnavailableError(ActivityError):
    """The external roster source could not be reached."""

    code = "RosterUnavailable"
    status_code = 502
    default_message = "Unable to load users right now."
