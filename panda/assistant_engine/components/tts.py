from __future__ import annotations

import asyncio
from pathlib import Path
import uuid

from panda.assistant_engine.interfaces import SpeechOutput


class FileSpeechOutput(SpeechOutput):
    """Writes every utterance to a text file; stands in for a real TTS engine."""

    def __init__(self, output_dir: Path, voice: str = "Default") -> None:
        self._output_dir = output_dir
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self.voice = voice
        self.last_path: Path | None = None

    async def speak(self, text: str) -> None:
        self.last_path = await asyncio.to_thread(self._write_text_fallback, text)

    def _write_text_fallback(self, text: str) -> Path:
        safe_voice = self.voice.strip().lower().replace(" ", "_") or "default"
        path = self._output_dir / f"{safe_voice}_{uuid.uuid4().hex[:10]}.txt"
        path.write_text(text.strip(), encoding="utf-8")
        return path
