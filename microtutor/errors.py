"""
Micro-Tutor: Error Taxonomy

MissingInput / InvalidTransition are caller contract violations: reported,
never repaired. ContentGenerationError is recoverable at the UI level and
never leaves session state modified. An unrecognized learner command is
NOT an error; the controller answers it with a neutral redirect.
"""


class TutorError(Exception):
    """Base class for every error raised by the tutor."""


class MissingInput(TutorError):
    """Required answer selection (or command) was not supplied."""


class InvalidTransition(TutorError):
    """advance() called for an illegal phase/input combination."""


class TurnInProgress(TutorError):
    """A second event arrived while the session's turn was still in flight."""


class ContentGenerationError(TutorError):
    """
    The generator failed, timed out, or returned non-conforming output
    after the corrective retry.

    `message` is safe to show to the learner. Internal state and score are
    never part of it.
    """

    def __init__(self, message: str = "Failed to get a response from the tutor. Please try again.",
                 retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.retryable = retryable
