"""Capture device backed by a pre-recorded audio file."""

from pathlib import Path

from .base import CaptureDevice


class FileCaptureDevice(CaptureDevice):
    """Plays back an audio file as if it had been recorded.

    Used by the CLI, which has no microphone access, and in tests.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._audio: bytes | None = None
        self._recording = False

    async def acquire(self) -> None:
        if not self._path.is_file():
            raise FileNotFoundError(f"Audio file not found: {self._path}")
        self._audio = self._path.read_bytes()

    async def start(self) -> None:
        if self._audio is None:
            raise RuntimeError("Device not acquired")
        self._recording = True

    async def stop(self) -> bytes:
        if not self._recording or self._audio is None:
            raise RuntimeError("Device is not recording")
        self._recording = False
        return self._audio

    async def release(self) -> None:
        self._audio = None
        self._recording = False
