from abc import ABC, abstractmethod

from .models import ImageAnalysis


class CaptureDevice(ABC):
    """Abstract audio capture device.

    This module hides the design decision of how audio is captured.
    Implementations wrap a platform recorder and must handle:
    - Permission prompts and exclusive acquisition
    - Recording format and chunking
    - Releasing the underlying tracks

    The device is exclusively held between ``acquire`` and ``release``;
    ``RecordingSession`` guarantees one release per acquisition.
    """

    @abstractmethod
    async def acquire(self) -> None:
        """Acquire exclusive access to the device.

        Raises:
            Exception: If permission is denied or the device is unavailable
        """
        pass

    @abstractmethod
    async def start(self) -> None:
        """Start recording on an acquired device."""
        pass

    @abstractmethod
    async def stop(self) -> bytes:
        """Stop recording and return the captured audio."""
        pass

    @abstractmethod
    async def release(self) -> None:
        """Release the device and its tracks."""
        pass


class Transcriber(ABC):
    """Abstract speech-to-text collaborator."""

    @abstractmethod
    async def transcribe(self, audio: bytes, user_id: str | None = None) -> str:
        """Transcribe recorded audio to text.

        Args:
            audio: Raw recorded audio
            user_id: Requesting user, if known

        Returns:
            Transcribed text

        Raises:
            TranscriptionError: If the audio is unusable or the service fails
        """
        pass


class ImageAnalyzer(ABC):
    """Abstract image-description collaborator."""

    @abstractmethod
    async def analyze(self, image_url: str) -> ImageAnalysis:
        """Describe a meal image and estimate its nutrition.

        Raises:
            ImageAnalysisError: If the image could not be analyzed
        """
        pass
