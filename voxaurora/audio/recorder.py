"""
Microphone capture using PyAudio.

Records fixed-length segments at 16 kHz mono, the format Whisper expects,
and hands them over as float32 samples in [-1, 1].
"""

import asyncio
import logging
from typing import Dict, List, Optional

import numpy as np

try:
    import pyaudio
    PYAUDIO_AVAILABLE = True
except ImportError:
    PYAUDIO_AVAILABLE = False
    pyaudio = None

logger = logging.getLogger(__name__)

PERMISSION_HINTS = ("permission", "denied", "not permitted", "not authorized")


class AudioRecorderError(Exception):
    """Base exception for audio recorder errors."""
    pass


class MicrophonePermissionError(AudioRecorderError):
    """Raised when microphone permissions are not granted."""
    pass


class DeviceError(AudioRecorderError):
    """Raised when no audio input devices are available."""
    pass


class AudioRecorder:
    """
    Segment recorder for the dictation loop.

    The stream is opened once and read segment after segment, so nothing is
    lost between two segments beyond the PyAudio buffer.

    Args:
        sample_rate: Audio sample rate in Hz (16kHz recommended for Whisper)
        chunk_size: Frames read per call
        device_index: PyAudio input device, None for the system default

    Example:
        >>> async with AudioRecorder() as recorder:
        ...     samples = await recorder.capture(5.0)
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_size: int = 1024,
        device_index: Optional[int] = None
    ):
        self.sample_rate = sample_rate
        self.chunk_size = chunk_size
        self.device_index = device_index
        self.channels = 1

        self._audio = None
        self._stream = None

        self._validate_config()

    def _validate_config(self) -> None:
        """Validate audio configuration parameters."""
        if self.sample_rate <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

    def open(self) -> None:
        """
        Open the input stream.

        Raises:
            AudioRecorderError: If PyAudio is missing or the stream cannot open
            MicrophonePermissionError: If the OS refuses microphone access
            DeviceError: If no input device exists
        """
        if self._stream is not None:
            return
        if not PYAUDIO_AVAILABLE:
            raise AudioRecorderError("PyAudio not available. Install with: pip install pyaudio")

        self._audio = pyaudio.PyAudio()
        try:
            if not self._has_input_devices():
                raise DeviceError("No audio input devices found")

            try:
                self._stream = self._audio.open(
                    format=pyaudio.paInt16,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    frames_per_buffer=self.chunk_size,
                    input_device_index=self.device_index,
                )
            except OSError as e:
                message = str(e).lower()
                if any(hint in message for hint in PERMISSION_HINTS):
                    raise MicrophonePermissionError(self._format_permission_error()) from e
                if "device" in message:
                    raise DeviceError(f"Audio input device unavailable: {e}") from e
                raise AudioRecorderError(f"Failed to open audio stream: {e}") from e
        except Exception:
            self.close()
            raise

        logger.info(f"Audio stream opened: {self.sample_rate}Hz, mono")

    def record_segment(self, seconds: float) -> np.ndarray:
        """
        Block for ``seconds`` and return the captured samples.

        Returns:
            float32 mono samples scaled to [-1, 1].
        """
        self.open()
        frames_needed = int(self.sample_rate * seconds)
        chunks = []
        frames_read = 0
        while frames_read < frames_needed:
            count = min(self.chunk_size, frames_needed - frames_read)
            data = self._stream.read(count, exception_on_overflow=False)
            chunks.append(data)
            frames_read += count

        samples = np.frombuffer(b"".join(chunks), dtype=np.int16)
        return samples.astype(np.float32) / 32768.0

    async def capture(self, seconds: float) -> np.ndarray:
        """Record one segment without blocking the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.record_segment, seconds)

    def _has_input_devices(self) -> bool:
        """Check if any audio input devices are available."""
        try:
            for i in range(self._audio.get_device_count()):
                device_info = self._audio.get_device_info_by_index(i)
                if device_info.get('maxInputChannels', 0) > 0:
                    return True
        except Exception as e:
            logger.warning(f"Error checking input devices: {e}")
        return False

    def _format_permission_error(self) -> str:
        """Format a helpful permission error message for macOS."""
        return (
            "Microphone access denied. On macOS:\n"
            "1. Open System Settings → Privacy & Security → Microphone\n"
            "2. Enable microphone access for your terminal\n"
            "3. Restart the application and try again"
        )

    def close(self) -> None:
        """Release PyAudio resources."""
        try:
            if self._stream is not None:
                if self._stream.is_active():
                    self._stream.stop_stream()
                self._stream.close()
        except Exception as e:
            logger.warning(f"Error closing audio stream: {e}")
        finally:
            self._stream = None
            if self._audio is not None:
                self._audio.terminate()
                self._audio = None

    async def __aenter__(self) -> "AudioRecorder":
        self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


async def get_available_devices() -> List[Dict]:
    """
    Get a list of available audio input devices.

    Returns:
        List of dictionaries with device information (index, name, channels,
        sample_rate, is_default)

    Raises:
        AudioRecorderError: If PyAudio is missing
        DeviceError: If the devices cannot be enumerated
    """
    if not PYAUDIO_AVAILABLE:
        raise AudioRecorderError("PyAudio not available. Install with: pip install pyaudio")

    devices = []
    audio = None

    try:
        audio = pyaudio.PyAudio()

        try:
            default_index = audio.get_default_input_device_info().get('index', -1)
        except OSError:
            default_index = -1

        for i in range(audio.get_device_count()):
            try:
                device_info = audio.get_device_info_by_index(i)
                if device_info.get('maxInputChannels', 0) > 0:
                    devices.append({
                        'index': i,
                        'name': device_info.get('name', 'Unknown'),
                        'channels': device_info.get('maxInputChannels', 0),
                        'sample_rate': int(device_info.get('defaultSampleRate', 0)),
                        'is_default': i == default_index
                    })
            except Exception as e:
                logger.warning(f"Error getting device {i} info: {e}")
                continue

    except Exception as e:
        logger.error(f"Error enumerating audio devices: {e}")
        raise DeviceError(f"Failed to enumerate audio devices: {e}") from e
    finally:
        if audio:
            audio.terminate()

    return devices
