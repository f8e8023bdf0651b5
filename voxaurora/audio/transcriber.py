"""
Speech-to-text using Faster Whisper.

Turns captured audio segments into raw text. The raw text may still carry
whisper sentinel tags; see ``voxaurora.text.normalize.clean_transcript``.
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging
import platform
import time

import numpy as np

try:
    import psutil
    PSUTIL_AVAILABLE = True
except ImportError:
    PSUTIL_AVAILABLE = False
    psutil = None

try:
    from faster_whisper import WhisperModel
    FASTER_WHISPER_AVAILABLE = True
except ImportError:
    FASTER_WHISPER_AVAILABLE = False
    WhisperModel = None

logger = logging.getLogger(__name__)


class WhisperTranscriber:
    """
    Faster Whisper transcriber for short dictation segments.

    Detects the device and compute type, and falls back to smaller models
    or to the CPU when the requested configuration cannot be loaded.
    """

    # Available models in order of preference for fallback
    AVAILABLE_MODELS = [
        "large-v3-turbo",
        "large-v3",
        "medium",
        "small",
        "base",
        "tiny"
    ]

    def __init__(
        self,
        model_size: str = "medium",
        device: str = "auto",
        compute_type: str = "auto",
        beam_size: int = 5,
        vad_filter: bool = True
    ):
        self.model_size = model_size
        self.device = self._detect_optimal_device() if device == "auto" else device
        self.compute_type = self._detect_optimal_compute_type() if compute_type == "auto" else compute_type
        self.beam_size = beam_size
        self.vad_filter = vad_filter

        self._model: Optional[WhisperModel] = None

    def _detect_optimal_device(self) -> str:
        """Use CUDA when torch reports it, the CPU otherwise."""
        try:
            import torch
            if torch.cuda.is_available():
                return "cuda"
        except ImportError:
            pass

        if platform.system() == "Darwin":
            logger.info("Running on macOS: using CPU device (MPS not supported by faster-whisper)")
        return "cpu"

    def _detect_optimal_compute_type(self) -> str:
        """float16 on GPU; on CPU int8 when memory is short, float32 otherwise."""
        if self.device == "cuda":
            return "float16"
        if PSUTIL_AVAILABLE:
            try:
                available_memory_gb = psutil.virtual_memory().available / (1024**3)
                return "int8" if available_memory_gb < 4 else "float32"
            except Exception:
                return "int8"
        return "int8"

    def load_model(self) -> None:
        """
        Load the Whisper model with fallback support.

        Raises:
            RuntimeError: If Faster Whisper is not available or all models fail to load.
        """
        if not FASTER_WHISPER_AVAILABLE:
            raise RuntimeError(
                "faster-whisper not available. Install with: pip install faster-whisper"
            )
        if self._model is not None:
            return

        models_to_try = [self.model_size] + [m for m in self.AVAILABLE_MODELS if m != self.model_size]
        devices_to_try = [self.device] if self.device == "cpu" else [self.device, "cpu"]

        last_error = None
        for model_size in models_to_try:
            for device in devices_to_try:
                compute_type = self.compute_type
                if device == "cpu" and compute_type == "float16":
                    compute_type = "int8"
                try:
                    logger.info(f"Loading Whisper model: {model_size} on {device} with {compute_type}")
                    self._model = WhisperModel(model_size, device=device, compute_type=compute_type)
                except Exception as e:
                    last_error = e
                    logger.warning(f"Failed to load model '{model_size}' on device '{device}': {e}")
                    continue

                if device != self.device:
                    logger.info(f"Fell back to device: {device}")
                self.model_size = model_size
                self.device = device
                self.compute_type = compute_type
                return

        raise RuntimeError(f"Failed to load any Whisper model. Last error: {last_error}")

    def transcribe_samples(self, samples: np.ndarray, language: Optional[str] = None) -> str:
        """
        Transcribe float32 16 kHz mono samples.

        Returns:
            The segment texts joined by single spaces.
        """
        if samples.size == 0:
            return ""
        self.load_model()

        start_time = time.time()
        segments, info = self._model.transcribe(
            samples,
            language=language,
            beam_size=self.beam_size,
            vad_filter=self.vad_filter,
        )
        parts: List[str] = [segment.text.strip() for segment in segments if segment.text.strip()]

        processing_time = time.time() - start_time
        audio_duration = getattr(info, 'duration', 0)
        if audio_duration:
            logger.info(
                f"Transcription completed: {processing_time:.2f}s for {audio_duration:.2f}s audio "
                f"(RTF: {processing_time / audio_duration:.2f})"
            )
        return " ".join(parts)

    async def transcribe(self, samples: np.ndarray, language: Optional[str] = None) -> str:
        """Transcribe in a worker thread to keep the event loop free."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.transcribe_samples, samples, language)

    def get_model_info(self) -> Dict[str, Any]:
        return {
            'model_size': self.model_size,
            'device': self.device,
            'compute_type': self.compute_type,
            'beam_size': self.beam_size,
            'vad_filter': self.vad_filter,
            'loaded': self._model is not None,
            'available': FASTER_WHISPER_AVAILABLE,
        }
