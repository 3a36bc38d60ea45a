"""
Command-Line Interface for voice-studio.

Runs one batch without the HTTP server: segment the text, generate every
segment over the given keys and write the merged WAV.

Usage Examples:
    # Generate with two user keys (two parallel workers)
    voice-studio --file chapter.txt --key AIza... --key AIza... --out chapter.wav

    # Positional text, shared key from VOICE_STUDIO_SYSTEM_KEY
    voice-studio "Xin chào. Hôm nay trời đẹp." --voice Kore --style "Read warmly"

    # Show segmentation only
    voice-studio --file chapter.txt --max-words 60 --dry-run --json

    # Voice catalogue
    voice-studio --list-voices

Environment Variables:
    VOICE_STUDIO_SETTINGS: Settings file (default config/settings.yaml)
    VOICE_STUDIO_SYSTEM_KEY: Shared API key used when no --key is given
"""
from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from voice_studio.core.config import load_settings
from voice_studio.core.errors import StudioError
from voice_studio.core.logging import configure_logging, get_logger, info, set_request_id
from voice_studio.services.studio_service import StudioService
from voice_studio.services.validators import validate_voice_config
from voice_studio.tts.chunker import segment_text
from voice_studio.tts.storage import save_artifact
from voice_studio.tts.voices import PREBUILT_VOICES, SUPPORTED_LANGUAGES
from voice_studio.utils.audio import probe_wav


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="voice-studio CLI (batch text-to-speech)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Read the text from a file")
    parser.add_argument("--out", help="Output WAV path (default: storage.output_dir/<artifact name>)")
    parser.add_argument("--config", help="Settings file (overrides VOICE_STUDIO_SETTINGS)")

    parser.add_argument("--key", action="append", default=[],
                        help="API key; repeat for one worker per key")
    parser.add_argument("--voice", help="Prebuilt voice name")
    parser.add_argument("--style", help="Style instruction, e.g. 'Read slowly'")
    parser.add_argument("--temperature", type=float, help="Sampling temperature (0.0-2.0)")
    parser.add_argument("--language", help="Target language code ('' disables translation)")
    parser.add_argument("--max-words", type=int, help="Words per segment")

    parser.add_argument("--dry-run", action="store_true", help="Segment only, no generation")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")
    parser.add_argument("--list-voices", action="store_true", help="List voices and languages")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        text = Path(args.file).read_text(encoding="utf-8")
    if not text or not text.strip():
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _emit(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _list_voices(as_json: bool) -> int:
    payload = {
        "voices": [{"name": v.name, "gender": v.gender, "character": v.character} for v in PREBUILT_VOICES],
        "languages": [{"code": lang.code, "name": lang.name} for lang in SUPPORTED_LANGUAGES],
    }
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
        return 0
    for v in PREBUILT_VOICES:
        print(f"{v.name:<14} {v.gender:<7} {v.character}")
    print()
    for lang in SUPPORTED_LANGUAGES:
        print(f"{lang.code}  {lang.name}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 on success, 1 when generation fails, 2 on usage errors.
    """
    args = _parse_args(argv)

    if args.list_voices:
        return _list_voices(args.json)

    configure_logging()
    log = get_logger("voice-studio.cli")
    set_request_id(str(uuid4())[:12])

    settings_path = args.config or os.getenv("VOICE_STUDIO_SETTINGS", "config/settings.yaml")
    settings = load_settings(settings_path, missing_ok=not args.config)
    config = settings.get_studio_config()
    text = _load_text(args)
    max_words = args.max_words or config.segmentation.max_words

    if args.dry_run:
        chunks = segment_text(text, max_words).chunks
        payload = {
            "ok": True,
            "dry_run": True,
            "chars": len(text),
            "max_words": max_words,
            "segments": [{"index": i, "words": len(c.split()), "text": c} for i, c in enumerate(chunks)],
        }
        info(log, "dry_run", segments=len(chunks), max_words=max_words)
        _emit(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    try:
        voice = validate_voice_config(
            args.voice or config.voice.name,
            args.style if args.style is not None else config.voice.style,
            args.temperature if args.temperature is not None else config.voice.temperature,
            args.language if args.language is not None else config.voice.language,
        )
        service = StudioService(settings, user_keys=args.key or None)
        if service.credential_mode == "none":
            print("No API key: pass --key or set VOICE_STUDIO_SYSTEM_KEY.")
            return 2

        service.load_text(text, max_words)
        result = asyncio.run(service.generate_all(voice))
    except StudioError as e:
        _emit(e.to_dict(), args.json)
        return 1

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_bytes(result.wav_bytes)
    else:
        out_path = save_artifact(config.storage.output_dir, result.filename, result.wav_bytes)

    probe = probe_wav(result.wav_bytes)
    payload = {
        "ok": True,
        "dry_run": False,
        "out": str(out_path),
        "bytes": len(result.wav_bytes),
        "duration_s": round(probe.duration_s, 3),
        "segments": len(result.completed) + len(result.failed),
        "completed": len(result.completed),
        "failed": result.failed,
        "credentials": service.credential_mode,
    }
    _emit(payload, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
