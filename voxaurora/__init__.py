"""
VoxAurora - voice dictation and commands.

Records short audio segments, transcribes them with Whisper, repairs
words split by the recogniser and matches the result against a wake word
and configured voice commands.
"""

__version__ = "0.1.0"
__description__ = "Voice dictation and commands with dictionary-backed word repair"
