"""TTS (Text-to-Speech) client for the voiceover track."""

from pathlib import Path
from typing import Any

import requests

from adburst.core.config import Settings
from adburst.core.errors import VoiceoverError
from adburst.utils.text_utils import estimate_spoken_duration


class TTSClient:
    """TTS client supporting ElevenLabs, OpenAI, and a silent stub."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize TTS client.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.provider = self._detect_provider()

    def _detect_provider(self) -> str:
        """Detect which TTS provider to use based on available credentials."""
        if self.settings.elevenlabs_api_key:
            return "elevenlabs"
        elif self.settings.openai_api_key:
            return "openai"
        else:
            return "stub"

    def synthesize(self, text: str, output_path: Path) -> Path:
        """
        Generate speech from text and save to file.

        Args:
            text: Text to convert to speech
            output_path: Requested audio path (the stub writes a .wav next to it)

        Returns:
            Path of the written audio file

        Raises:
            VoiceoverError: If generation fails
        """
        if not text or not text.strip():
            raise VoiceoverError("Text cannot be empty")

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Generating speech using {self.provider} provider for {len(text)} characters...")

        try:
            if self.provider == "elevenlabs":
                written = self._generate_elevenlabs(text, output_path)
            elif self.provider == "openai":
                written = self._generate_openai(text, output_path)
            else:
                written = self._generate_stub(text, output_path)
        except VoiceoverError:
            raise
        except Exception as e:
            raise VoiceoverError(f"{self.provider} TTS failed: {e}") from e

        self.logger.info(f"Speech generated: {written}")
        return written

    def _generate_elevenlabs(self, text: str, output_path: Path) -> Path:
        """Generate speech using ElevenLabs API."""
        url = f"https://api.elevenlabs.io/v1/text-to-speech/{self.settings.elevenlabs_voice_id}"
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.settings.elevenlabs_api_key,
        }
        data = {
            "text": text,
            "model_id": self.settings.elevenlabs_model_id,
            "voice_settings": {
                "stability": 0.5,
                "similarity_boost": 0.75,
            },
        }

        try:
            response = requests.post(url, json=data, headers=headers, timeout=self.settings.provider_request_timeout)
        except requests.exceptions.RequestException as e:
            raise VoiceoverError(f"Network error calling ElevenLabs API: {e}") from e

        if response.status_code != 200:
            raise VoiceoverError(f"ElevenLabs API returned status {response.status_code}: {response.text[:300]}")

        with open(output_path, "wb") as f:
            f.write(response.content)
        return output_path

    def _generate_openai(self, text: str, output_path: Path) -> Path:
        """Generate speech using OpenAI TTS API."""
        from openai import OpenAI

        client = OpenAI(api_key=self.settings.openai_api_key)
        response = client.audio.speech.create(
            model="tts-1",
            voice="alloy",
            input=text,
        )
        response.stream_to_file(str(output_path))
        return output_path

    def _generate_stub(self, text: str, output_path: Path) -> Path:
        """Silent audio as long as the text would take to read, for runs without a TTS provider."""
        from pydub import AudioSegment

        self.logger.warning("Using stub TTS - generating silent audio placeholder")
        duration_seconds = max(1.0, estimate_spoken_duration(text, self.settings.words_per_second))
        output_path = output_path.with_suffix(".wav")
        AudioSegment.silent(duration=int(duration_seconds * 1000)).export(str(output_path), format="wav")
        return output_path
