"""Failure taxonomy of a commitment resolution cycle.

Domain failures are recovered inside the cycle and only reported through the
wide event. External capability and persistence failures are reported and
then re-raised so the delivering side retries the message.
"""

from __future__ import annotations


class CommitmentError(Exception):
    """Base class; ``reason`` is the name recorded in the wide event."""

    recoverable = True

    @property
    def reason(self) -> str:
        return type(self).__name__


class EmptyModelResponse(CommitmentError):
    """The completion capability returned no action."""


class InvalidModelResponse(CommitmentError):
    """The model answer is not a well-formed commitment action."""

    def __init__(self, message: str, errors: str | None = None) -> None:
        super().__init__(message)
        self.errors = errors


class MissingActionId(CommitmentError):
    """CHANGE or CANCEL without the id of the commitment it targets."""


class CommitmentNotFound(CommitmentError):
    """The referenced commitment does not exist for the participant."""

    def __init__(self, commitment_id: int) -> None:
        super().__init__(f"commitment {commitment_id} not found")
        self.commitment_id = commitment_id


class DuplicateCommitment(CommitmentError):
    """A commitment with the same identity key is already stored."""


class ExternalCapabilityFailure(CommitmentError):
    """Transport failure or timeout talking to an external capability."""

    recoverable = False


class CompletionFailure(ExternalCapabilityFailure):
    """The completion endpoint failed or timed out."""


class CalendarFailure(ExternalCapabilityFailure):
    """The calendar API failed or timed out."""


class PersistenceFailure(CommitmentError):
    """The commitment store failed or timed out."""

    recoverable = False
