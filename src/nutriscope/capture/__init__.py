"""Input capture adapters: microphone recording, transcription and image analysis."""

from .base import CaptureDevice, ImageAnalyzer, Transcriber
from .file import FileCaptureDevice
from .models import ImageAnalysis, NutritionEstimate, compose_input_from_analysis
from .providers import LLMImageAnalyzer, OpenAITranscriber, parse_image_analysis
from .recording import RecordingSession

__all__ = [
    "CaptureDevice",
    "FileCaptureDevice",
    "ImageAnalysis",
    "ImageAnalyzer",
    "LLMImageAnalyzer",
    "NutritionEstimate",
    "OpenAITranscriber",
    "RecordingSession",
    "Transcriber",
    "compose_input_from_analysis",
    "parse_image_analysis",
]
