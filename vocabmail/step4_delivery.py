"""Step 4: Delivery - render the email and attach the optional study audio."""

from datetime import datetime
from html import escape
from pathlib import Path
from typing import Optional

from vocabmail.logger import get_logger
from vocabmail.models import DispatchRun, GeneratedItem, utc_now_iso
from vocabmail.tts_client import SpeechSynthesisError, SpeechSynthesizer, build_audio_script

MAX_GENERAL_TRANSLATIONS = 8
MAX_TENSE_TRANSLATIONS = 6


def format_display_date(date_str: str) -> str:
    """Format 'YYYY-MM-DD' as 'DD/MM/YYYY'; other values are returned unchanged."""
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").strftime("%d/%m/%Y")
    except (TypeError, ValueError):
        return date_str


def build_subject(run: DispatchRun) -> str:
    return f"Daily English: {len(run.pick)} items ({format_display_date(run.date)})"


def _distinct(values: list[str], limit: int) -> list[str]:
    seen = set()
    result = []
    for value in values:
        value = value.strip()
        if value and value.lower() not in seen:
            seen.add(value.lower())
            result.append(value)
        if len(result) >= limit:
            break
    return result


def _render_item(item: GeneratedItem) -> str:
    parts = ["<li style='margin-bottom:18px'>"]
    parts.append(
        f"<div><b>{escape(item.source_text)}</b> "
        f"<span style='color:#666'>(type: {escape(item.category.value)})</span></div>"
    )

    forms = item.verb_forms
    if forms is not None:
        parts.append(
            "<div style='color:#444;font-size:13px;margin-top:4px'><b>Forms:</b> "
            f"Present: {escape(forms.present)}, Past: {escape(forms.past_simple)}, "
            f"Participle: {escape(forms.past_participle)}</div>"
        )

    parts.append("<div style='margin-top:6px'><b>Translations (PT-BR):</b><ul>")
    for translation in _distinct(item.translations.general, MAX_GENERAL_TRANSLATIONS):
        parts.append(f"<li>{escape(translation)}</li>")
    parts.append("</ul></div>")

    if forms is not None:
        tenses = [
            ("Present", item.translations.present),
            ("Past Simple", item.translations.past_simple),
            ("Past Participle", item.translations.past_participle),
        ]
        parts.append("<div style='margin-top:6px'><b>Translations by tense:</b><ul>")
        for label, values in tenses:
            joined = "; ".join(values[:MAX_TENSE_TRANSLATIONS])
            parts.append(f"<li><b>{label}</b>: {escape(joined)}</li>")
        parts.append("</ul></div>")

    if item.examples_source:
        parts.append("<div style='margin-top:6px'><b>Examples:</b><ol style='margin-top:4px'>")
        for i, source in enumerate(item.examples_source):
            translated = item.examples_translated[i] if i < len(item.examples_translated) else ""
            parts.append(f"<li style='margin-bottom:8px'><div>{escape(source)}</div>")
            if translated.strip():
                parts.append(f"<div style='color:#555'><i>{escape(translated)}</i></div>")
            else:
                parts.append("<div style='color:#999'><i>(PT-BR translation unavailable)</i></div>")
            parts.append("</li>")
        parts.append("</ol></div>")

    parts.append("</li>")
    return "".join(parts)


def build_html(run: DispatchRun) -> str:
    """Render the email body. All model text is HTML-escaped."""
    parts = ["<div style='font-family:Arial,sans-serif'>"]
    parts.append(
        f"<h2>Vocabulary of the day ({run.iteration}) - {escape(format_display_date(run.date))}</h2>"
    )
    parts.append(f"<p style='color:#666'>Total: {len(run.pick)} lines</p>")

    if run.audio_path:
        parts.append(
            "<div style='margin:12px 0;padding:10px;border:1px solid #eee;border-radius:10px;background:#fafafa'>"
            "<div style='font-size:13px'>&#128266; <b>Study audio</b> is attached to this email.</div>"
            "<div style='color:#666;font-size:12px;margin-top:4px'>Open the attachment to listen.</div>"
            "</div>"
        )

    if run.analysis is None or not run.analysis.items:
        parts.append("<p><i>No analysis available.</i></p></div>")
        return "".join(parts)

    parts.append("<ol>")
    parts.extend(_render_item(item) for item in run.analysis.items)
    parts.append("</ol>")
    parts.append("<p style='color:#666'>Sent automatically.</p>")
    parts.append("</div>")
    return "".join(parts)


def ensure_audio_for_run(run: DispatchRun, synthesizer: SpeechSynthesizer, audio_dir: Path) -> Optional[str]:
    """
    Make sure the run has a study audio file, synthesizing it if missing.

    Failures are logged and leave the run without audio.

    Returns:
        The audio path, or None
    """
    if run.analysis is None or not run.analysis.items:
        return None

    if run.audio_path and Path(run.audio_path).exists():
        return run.audio_path

    safe_date = "".join("-" if ch in ":/\\" else ch for ch in run.date) or datetime.now().strftime("%Y-%m-%d")
    output_path = audio_dir / f"{safe_date}_day{run.iteration:03d}{synthesizer.file_extension}"

    try:
        audio_dir.mkdir(parents=True, exist_ok=True)
        synthesizer.synthesize_to_file(build_audio_script(run), output_path)
    except (SpeechSynthesisError, OSError) as e:
        get_logger().warning(f"  Audio synthesis failed ({synthesizer.name}). Continuing without audio: {e}")
        run.audio_path = None
        run.audio_ready_at = None
        return None

    run.audio_path = str(output_path)
    run.audio_ready_at = utc_now_iso()
    return run.audio_path


def remove_audio_file(path: Optional[str]) -> None:
    """Delete a delivered audio file. Failures are logged, never raised."""
    if not path:
        return
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as e:
        get_logger().warning(f"  Could not delete audio file '{path}': {e}")
