"""Recording session around an exclusively held capture device."""

import logging

from ..errors import CaptureError
from .base import CaptureDevice

logger = logging.getLogger(__name__)


class RecordingSession:
    """One acquisition of a capture device.

    The device is released exactly once per successful acquisition, on
    every exit path: normal stop, error while recording, or explicit
    abort. Further releases are ignored.
    """

    def __init__(self, device: CaptureDevice):
        self._device = device
        self._acquired = False
        self._released = False
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_released(self) -> bool:
        return self._released

    async def start(self) -> None:
        """Acquire the device and begin recording.

        Raises:
            CaptureError: If the device cannot be acquired or started.
                The device is released if it had been acquired.
        """
        if self._acquired:
            raise CaptureError("Recording session already started")

        try:
            await self._device.acquire()
        except Exception as e:
            logger.warning("Could not acquire capture device: %s", e)
            raise CaptureError(f"Could not acquire capture device: {e}") from e
        self._acquired = True

        try:
            await self._device.start()
        except Exception as e:
            logger.warning("Could not start recording: %s", e)
            await self.release()
            raise CaptureError(f"Could not start recording: {e}") from e
        self._recording = True

    async def stop(self) -> bytes:
        """Stop recording and return the audio; the device is released.

        Raises:
            CaptureError: If stopping fails (the device is still released)
        """
        if not self._recording:
            raise CaptureError("Recording session is not recording")

        self._recording = False
        try:
            return await self._device.stop()
        except Exception as e:
            raise CaptureError(f"Recording failed: {e}") from e
        finally:
            await self.release()

    async def abort(self) -> None:
        """Discard the recording and release the device."""
        self._recording = False
        await self.release()

    async def release(self) -> None:
        if not self._acquired or self._released:
            return
        self._released = True
        try:
            await self._device.release()
        except Exception as e:
            logger.error("Error releasing capture device: %s", e)

    async def __aenter__(self) -> "RecordingSession":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.release()
