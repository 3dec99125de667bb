"""
Speech synthesis for the optional study audio.

Defines the interface a synthesizer must implement, and an Edge-TTS
implementation (free neural voices, no API key).
"""
import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import edge_tts

from vocabmail.models import DispatchRun


class SpeechSynthesisError(Exception):
    """Raised when audio synthesis fails."""

    pass


class SpeechSynthesizer(ABC):
    """Abstract base class for speech synthesizers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the synthesizer name"""
        pass

    @property
    @abstractmethod
    def file_extension(self) -> str:
        """Extension of the files this synthesizer writes (e.g. '.mp3')"""
        pass

    @abstractmethod
    def synthesize_to_file(self, text: str, output_path: Path) -> None:
        """
        Synthesize text into an audio file.

        Args:
            text: Text to speak
            output_path: Destination file

        Raises:
            SpeechSynthesisError: If synthesis fails
        """
        pass


class EdgeTTSSynthesizer(SpeechSynthesizer):
    """Synthesizer using Microsoft Edge's neural voices."""

    def __init__(self, voice: str, rate: str = "+0%", volume: str = "+0%"):
        self.voice = voice
        self.rate = rate
        self.volume = volume

    @property
    def name(self) -> str:
        return "edge-tts"

    @property
    def file_extension(self) -> str:
        return ".mp3"

    def synthesize_to_file(self, text: str, output_path: Path) -> None:
        if not text.strip():
            raise SpeechSynthesisError("Cannot synthesize empty text")

        try:
            communicate = edge_tts.Communicate(text=text, voice=self.voice, rate=self.rate, volume=self.volume)
            asyncio.run(communicate.save(str(output_path)))
        except Exception as e:
            raise SpeechSynthesisError(f"Edge-TTS synthesis failed: {e}") from e

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise SpeechSynthesisError("Edge-TTS produced no audio")


def build_audio_script(run: DispatchRun) -> str:
    """Build the English-only study script (no translations)."""
    lines = [
        f"English vocabulary for {run.date}.",
        f"There are {len(run.pick)} items today.",
        "",
    ]

    items = run.analysis.items if run.analysis else []
    for i, item in enumerate(items, start=1):
        lines.append(f"Item {i}. {item.source_text}.")

        if item.verb_forms is not None:
            forms = item.verb_forms
            lines.append(
                f"Present: {forms.present}. Past: {forms.past_simple}. Past participle: {forms.past_participle}."
            )

        examples = [ex.strip().rstrip(".") for ex in item.examples_source if ex.strip()]
        if examples:
            lines.append("Examples.")
            lines.extend(f"{ex}." for ex in examples)

        lines.append("")

    lines.append("End.")
    return "\n".join(lines)
