"""
Command-Line Interface for voiceover-relay.

Sends text to a running relay and saves the MP3 it returns.

Usage Examples:
    # Single script, saved as voiceover-<epoch-millis>.mp3 in the current dir
    voiceover "Hello world, this is a test." --voice en-US-Neural2-A

    # Slower speech into a chosen directory
    voiceover --text "Welcome to the product tour." --speed 0.85 --out clips/

    # One script per line
    voiceover --file scripts.txt --out clips/

    # Show the upstream request that the relay would build, no network
    voiceover --text "Hello world, this is a test." --dry-run --json

Environment Variables:
    VOICEOVER_RELAY_URL: Relay base URL (default http://localhost:8000)
    VOICEOVER_SETTINGS: Settings file (default config/settings.yaml)
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from voiceover_relay.client import GenerationSession, SpeechClient, validate
from voiceover_relay.core.config import load_settings
from voiceover_relay.core.logging import configure_logging, get_logger, info, set_request_id
from voiceover_relay.services.validators import ValidationError
from voiceover_relay.upstream import UpstreamSynthesisPayload


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="voiceover CLI (text to MP3 via the relay)")

    parser.add_argument("text_pos", nargs="?", help="Script text (positional)")
    parser.add_argument("--text", help="Script text")
    parser.add_argument("--file", help="Batch input file (1 line = 1 script)")

    parser.add_argument("--voice", help="Voice name (e.g. en-US-Neural2-A)")
    parser.add_argument("--speed", type=float, default=1.0, help="Speaking rate (default 1.0)")

    parser.add_argument("--url", help="Relay base URL")
    parser.add_argument("--out", default=".", help="Output directory")

    parser.add_argument("--dry-run", action="store_true",
                        help="Validate and print the upstream payload without calling the relay")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Input scripts from the positional argument, --text, or --file.

    Raises:
        SystemExit: No input, or --file combined with text.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _print(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        0 when every script was saved (or validated, with --dry-run),
        1 when any script failed; failure messages are printed verbatim.
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("voiceover.cli")
    set_request_id(str(uuid4())[:12])

    settings = load_settings(os.getenv("VOICEOVER_SETTINGS", "config/settings.yaml"), missing_ok=True)
    config = settings.get_relay_config()
    voice = args.voice or config.client.default_voice
    base_url = args.url or config.client.base_url

    texts = _load_texts(args)

    if args.dry_run:
        items = []
        ok = True
        for text in texts:
            try:
                request = validate(text, voice, args.speed, config.limits.min_text_chars)
            except ValidationError as e:
                ok = False
                items.append({"ok": False, "code": e.code, "error": e.message})
                continue
            items.append({
                "ok": True,
                "chars": len(request.text),
                "upstream_payload": UpstreamSynthesisPayload.from_request(request).to_wire(),
            })
        _print({"ok": ok, "dry_run": True, "items": items}, args.json)
        print("DRY_RUN_OK" if ok else "DRY_RUN_FAILED")
        return 0 if ok else 1

    batch = bool(args.file)
    results = []
    ok = True
    with SpeechClient(base_url, timeout_s=config.client.timeout_s) as client:
        session = GenerationSession(client, min_chars=config.limits.min_text_chars)
        for i, text in enumerate(texts):
            info(log, "generate", chars=len(text), voice=voice, url=base_url)
            artifact = session.generate(text, voice, args.speed)
            if artifact is None:
                ok = False
                results.append({"ok": False, "error": session.error_message})
                print(f"Error: {session.error_message}")
                continue
            filename = f"item_{i + 1:03d}.mp3" if batch else None
            path = session.download(args.out, filename=filename)
            results.append({"ok": True, "out": str(path), "bytes": artifact.content_length})

    _print({"ok": ok, "dry_run": False, "items": results}, args.json)
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
