"""Audio capture and speech-to-text."""
