"""
Command-line interface for ssml-studio.

Compiles SSML without running the HTTP server, optionally sends it to
Azure for synthesis, and lists the voice catalog.

Usage Examples:
    # Single-voice SSML from text
    ssml-studio "你好，世界" --voice zh-CN-XiaoxiaoNeural --style cheerful --rate 1.2

    # Multi-segment document (YAML or JSON)
    ssml-studio --doc dialogue.yaml --out dialogue.ssml

    # Compile and synthesize, print the audio URL as JSON
    ssml-studio --doc dialogue.yaml --synthesize --json

    # List voices for one locale
    ssml-studio --voices --language en-US

Document file:
    text: "Hello world"
    global_voice: en-US-JennyNeural
    global_language: en-US
    characters:
      - id: narrator
        name: Narrator
        voice: en-US-GuyNeural
        style: calm
    segments:
      - start_index: 6
        end_index: 11
        character_id: narrator
        rate: 1.2
        break_time: 500ms

Environment Variables:
    SSML_STUDIO_SETTINGS: Settings file (default config/settings.yaml)
    AZURE_SPEECH_KEY / AZURE_SPEECH_REGION: Credential for --synthesize/--voices
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import yaml

from ssml_studio.core.config import Settings, StudioConfig, load_settings
from ssml_studio.core.logging import configure_logging, get_logger, info, set_request_id
from ssml_studio.errors import EmptySelectionError, InvalidInputError, StudioError
from ssml_studio.services.studio import StudioService
from ssml_studio.services.validators import validate_break_time, validate_text
from ssml_studio.ssml.compiler import EmitPolicy, compile_preview
from ssml_studio.ssml.models import PATCHABLE_FIELDS, VoiceSettings
from ssml_studio.ssml.session import EditingSession


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ssml-studio", description="ssml-studio CLI (compile SSML, synthesize)")

    parser.add_argument("text_pos", nargs="?", help="Text to compile (positional)")
    parser.add_argument("--text", help="Text to compile")
    parser.add_argument("--file", help="Read the text from a file")
    parser.add_argument("--doc", help="YAML/JSON document with text, characters and segments")

    parser.add_argument("--voice", help="Voice short name (global voice for --doc)")
    parser.add_argument("--language", help="Document language, e.g. zh-CN")
    parser.add_argument("--style", help="Speaking style (single-voice mode)")
    parser.add_argument("--rate", type=float, default=1.0, help="Rate multiplier (default 1.0)")
    parser.add_argument("--pitch", type=float, default=0, help="Pitch shift in Hz (default 0)")
    parser.add_argument("--volume", type=float, default=100, help="Volume percent (default 100)")
    parser.add_argument("--intensity", type=float, default=1.0, help="Style degree (default 1.0)")
    parser.add_argument("--policy", choices=[p.value for p in EmitPolicy], default=EmitPolicy.ALWAYS_PRESENT.value,
                        help="Prosody emission for --doc segments")

    parser.add_argument("--settings", help="Settings file (default: $SSML_STUDIO_SETTINGS or config/settings.yaml)")
    parser.add_argument("--out", help="Write the SSML to this file")
    parser.add_argument("--json", action="store_true", help="Print a JSON summary")
    parser.add_argument("--synthesize", action="store_true", help="Send the SSML to Azure and store the audio")
    parser.add_argument("--voices", action="store_true", help="List the voice catalog and exit")

    return parser.parse_args(argv)


def _load_settings(path: Optional[str]) -> Settings:
    path = path or os.getenv("SSML_STUDIO_SETTINGS", "config/settings.yaml")
    try:
        return load_settings(path)
    except FileNotFoundError:
        return Settings(raw={})


def _load_text(args: argparse.Namespace) -> str:
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        return Path(args.file).read_text(encoding="utf-8")
    if not text:
        raise SystemExit("Provide --text, a positional text, --file or --doc.")
    return text


def _load_doc(path: str) -> Dict[str, Any]:
    try:
        with Path(path).open("r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except OSError as exc:
        raise InvalidInputError(f"Cannot read document {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise InvalidInputError(f"Document {path} is not valid YAML or JSON: {exc}") from exc
    if not isinstance(doc, dict) or "text" not in doc:
        raise InvalidInputError(f"Document {path} must be a mapping with a 'text' key")
    return doc


def _entry(raw: Any, kind: str, index: int, *required: str) -> Dict[str, Any]:
    """A characters/segments list item, checked for its required keys."""
    if not isinstance(raw, dict):
        raise InvalidInputError(f"{kind} #{index} must be a mapping", {"kind": kind, "index": index})
    missing = [k for k in required if raw.get(k) is None]
    if missing:
        raise InvalidInputError(
            f"{kind} #{index} is missing {', '.join(missing)}",
            {"kind": kind, "index": index, "missing": missing},
        )
    return raw


def _index(raw: Dict[str, Any], key: str, index: int) -> int:
    try:
        return int(raw[key])
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"segment #{index} {key} must be an integer, got {raw[key]!r}") from exc


def build_session(doc: Dict[str, Any], config: StudioConfig, voice: Optional[str] = None,
                  language: Optional[str] = None) -> EditingSession:
    """
    Replay a document file into an EditingSession.

    Each segment is selected, its character (if any) applied, then its
    own overrides on top, the same steps an editor user would take.
    """
    session = EditingSession(
        str(doc["text"]),
        global_voice=voice or doc.get("global_voice") or config.ssml.global_voice,
        global_language=language or doc.get("global_language") or config.ssml.global_language,
        max_text_chars=config.ssml.max_text_chars,
    )

    char_ids: Dict[str, str] = {}
    for i, raw in enumerate(doc.get("characters") or []):
        raw = _entry(raw, "character", i, "name", "voice")
        fields = {k: raw.get(k) for k in ("style", "rate", "pitch", "volume", "description", "color")}
        character = session.create_character(raw["name"], raw["voice"], raw.get("language"), **fields)
        char_ids[str(raw.get("id") or raw["name"])] = character.id

    for i, raw in enumerate(doc.get("segments") or []):
        raw = _entry(raw, "segment", i, "start_index", "end_index")
        start, end = _index(raw, "start_index", i), _index(raw, "end_index", i)
        if session.select(start, end) is None:
            # A document segment must cover at least one character
            raise EmptySelectionError(details={"start_index": start, "end_index": end})
        ref = raw.get("character_id")
        if ref:
            if str(ref) not in char_ids:
                raise InvalidInputError(f"Segment refers to unknown character {ref!r}")
            session.apply_character(char_ids[str(ref)])
        patch = {k: raw[k] for k in PATCHABLE_FIELDS if k in raw and k != "character_id"}
        if patch.get("break_time"):
            patch["break_time"] = validate_break_time(str(patch["break_time"]))
        session.apply_patch(patch)

    session.clear_selection()
    return session


def _list_voices(service: StudioService, language: Optional[str], as_json: bool) -> int:
    result = service.voices.load()
    if not result.ok or result.catalog is None:
        print(json.dumps({"ok": False, "error": result.error, "message": result.message}, ensure_ascii=False))
        return 1

    voices = result.catalog.for_language(language) if language else result.catalog.all()
    if as_json:
        print(json.dumps({"ok": True, "voices": [v.to_dict() for v in voices]}, ensure_ascii=False))
    else:
        for v in voices:
            styles = ",".join(v.style_list) or "-"
            print(f"{v.short_name:<40} {v.gender:<7} {v.locale:<8} {styles}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        0 on success, 1 on a compile or synthesis error.
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("ssml-studio.cli")
    set_request_id(uuid4().hex[:12])

    settings = _load_settings(args.settings)
    config = StudioConfig.from_settings(settings)

    if args.voices:
        service = StudioService(config)
        try:
            return _list_voices(service, args.language, args.json)
        finally:
            service.close()

    try:
        if args.doc:
            session = build_session(_load_doc(args.doc), config, args.voice, args.language)
            markup = session.compile(EmitPolicy(args.policy))
            language, voice = session.global_language, session.global_voice
            segments = len(session.store)
            chars = len(session.text)
        else:
            text = validate_text(_load_text(args), config.ssml.max_text_chars)
            vs = VoiceSettings(
                language=args.language or config.ssml.global_language,
                voice=args.voice or config.ssml.global_voice,
                style=args.style,
                rate=args.rate,
                pitch=args.pitch,
                volume=args.volume,
                emotion_intensity=args.intensity,
            )
            markup = compile_preview(text, vs)
            language, voice = vs.language, vs.voice
            segments = 0
            chars = len(text)
    except StudioError as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False))
        return 1

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(markup, encoding="utf-8")
        info(log, "ssml_written", out=str(out_path), chars=len(markup))

    payload: Dict[str, Any] = {"ok": True, "chars": chars, "segments": segments, "ssml": markup}

    if args.synthesize:
        service = StudioService(config)
        try:
            result = service.invoker.synthesize(markup, language=language, voice=voice)
        finally:
            service.close()
        if not result.ok:
            print(json.dumps(result.to_dict(), ensure_ascii=False))
            return 1
        payload["audio_url"] = result.audio_url
        payload["file_size"] = result.file_size

    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    elif not args.out or args.synthesize:
        print(payload.get("audio_url") or markup)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
