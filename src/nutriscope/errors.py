"""Error taxonomy for the assistant.

Each collaborator boundary raises its own error type so the session can
apply the matching recovery policy:

- CaptureError / TranscriptionError: recovered locally, one error message
- GenerationError: aborts the current turn with an apology
- ExecutionError: reported as an extra assistant message, never retried
- PersistenceError: retried with backoff, then reported through a callback
"""


class AssistantError(Exception):
    """Base class for assistant errors."""

    default_user_message = "Something went wrong. Please try again."

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self._user_message = user_message

    @property
    def user_message(self) -> str:
        """Text suitable for showing in the conversation."""
        return self._user_message or self.default_user_message

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class CaptureError(AssistantError):
    """Capture device could not be acquired or failed while recording."""

    default_user_message = (
        "Could not access microphone. Please check your permissions and try again."
    )


class TranscriptionError(AssistantError):
    """Speech-to-text collaborator failed."""

    default_user_message = "Failed to transcribe audio. Please try again."


class GenerationError(AssistantError):
    """Generation collaborator unavailable or returned malformed output."""

    default_user_message = "Sorry, I encountered an error. Please try again."

    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        retryable: bool = False
    ):
        super().__init__(message, user_message)
        self._retryable = retryable

    def is_retryable(self) -> bool:
        return self._retryable


class ExecutionError(AssistantError):
    """Domain mutation could not be attempted (collaborator unreachable)."""

    default_user_message = "Failed to execute action. Please try again."

    def __init__(self, message: str, action_type: str | None = None):
        msg = message
        if action_type:
            msg += f" (action: {action_type})"
        super().__init__(msg, user_message=message)
        self.action_type = action_type


class PersistenceError(AssistantError):
    """Conversation save, load or delete failed."""

    default_user_message = "Your conversation could not be saved."

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self._retryable = retryable

    def is_retryable(self) -> bool:
        return self._retryable


class DomainStoreError(Exception):
    """A domain store rejected a write (validation, constraint, not found).

    Rejections are reported as unsuccessful execution results rather than
    raised to the session.
    """


class ImageAnalysisError(CaptureError):
    """Image-analysis collaborator failed or returned unusable output."""

    default_user_message = "Could not analyze the image."
