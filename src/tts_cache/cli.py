"""
Command-Line Interface for tts-cache.

Generates, inspects or dry-runs cached artifacts without the HTTP server.
Uses the same TTSService as the API, so artifacts and records written here
are the ones the server serves.

Usage Examples:
    # Generate (or reuse) the artifact for a content item
    tts-cache --content-id 42 --file article.html

    # Positional text
    tts-cache --content-id 42 "첫 번째 문장입니다. 두 번째 문장입니다."

    # Status of a content item
    tts-cache --content-id 42 --status

    # Dry-run: normalize and chunk, no provider calls
    tts-cache --file article.html --dry-run --json

    # Offline pipeline check with the tone engine
    tts-cache --engine tone --content-id demo --text "Hello there."

Environment Variables:
    TTS_CACHE_SETTINGS: Settings file (default config/settings.yaml)
    TTS_CACHE_ENGINE: Engine to use (google, tone)
    TTS_CACHE_GOOGLE_API_KEY: API key for the google engine
    TTS_CACHE_LOG_LEVEL: 1-4 or MINIMAL/NORMAL/VERBOSE/DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from tts_cache.core.config import (
    ConfigValidationError,
    Settings,
    default_settings,
    load_settings,
)
from tts_cache.core.logging import configure_logging, get_logger, info, set_request_id
from tts_cache.services.tts_service import TTSError, TTSService
from tts_cache.tts.chunker import split_text_by_bytes
from tts_cache.tts.storage import derive_key, fingerprint
from tts_cache.utils.text import clean_text_for_tts


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="tts-cache", description="tts-cache CLI (serverless generate)")

    # Input options
    parser.add_argument("text_pos", nargs="?", help="Source text (positional)")
    parser.add_argument("--text", help="Source text or HTML markup")
    parser.add_argument("--file", help="Read source text from a file")
    parser.add_argument("--content-id", help="Content identifier")

    # Configuration overrides
    parser.add_argument("--settings", help="Settings YAML (default: $TTS_CACHE_SETTINGS or config/settings.yaml)")
    parser.add_argument("--engine", help="Engine override (google, tone)")
    parser.add_argument("--max-bytes", type=int, help="Chunk byte budget override")

    # Execution modes
    parser.add_argument("--status", action="store_true",
                        help="Show the artifact status for --content-id")
    parser.add_argument("--dry-run", action="store_true",
                        help="Normalize and chunk without calling the provider")
    parser.add_argument("--json", action="store_true",
                        help="Print JSON summary")

    return parser.parse_args(argv)


def _load_text(args: argparse.Namespace) -> str:
    """
    Raises:
        SystemExit: If no input was given or both a file and text were.
    """
    text = args.text or args.text_pos
    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        text = Path(args.file).read_text(encoding="utf-8")
    if not text or not text.strip():
        raise SystemExit("Provide --text, --file or a positional text.")
    return text


def _load_cli_settings(args: argparse.Namespace) -> Settings:
    if args.engine:
        os.environ["TTS_CACHE_ENGINE"] = args.engine

    path = args.settings or os.getenv("TTS_CACHE_SETTINGS")
    if path:
        # An explicit path must exist
        settings = load_settings(path)
    else:
        try:
            settings = load_settings("config/settings.yaml")
        except FileNotFoundError:
            settings = default_settings()

    if args.max_bytes is not None:
        raw = dict(settings.raw)
        raw["chunking"] = {**raw.get("chunking", {}), "max_bytes": args.max_bytes}
        settings = Settings(raw=raw)
    return settings


def _dry_run_summary(text: str, content_id: Optional[str], max_bytes: int) -> Dict[str, Any]:
    """
    What a generation would do: normalized size, chunks and artifact key.
    """
    normalized = clean_text_for_tts(text)
    summary: Dict[str, Any] = {
        "text_len": len(text),
        "normalized_len": len(normalized),
        "fingerprint": fingerprint(normalized) if normalized else None,
        "max_bytes": max_bytes,
        "chunks": [],
    }
    if normalized:
        cr = split_text_by_bytes(normalized, max_bytes)
        summary["chunks"] = [{"index": c.index, "chars": len(c.text), "bytes": c.byte_length} for c in cr.chunks]
    if content_id and normalized:
        summary["key"] = derive_key(content_id, normalized)
    return summary


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for a TTS error, 2 for bad config).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("tts-cache.cli")
    set_request_id(str(uuid4())[:12])

    try:
        settings = _load_cli_settings(args)
        config = settings.get_service_config()
    except (ConfigValidationError, FileNotFoundError) as e:
        _emit({"ok": False, "error": "CONFIG_ERROR", "message": str(e)}, args.json)
        return 2

    # Dry-run needs neither an engine nor storage
    if args.dry_run:
        summary = _dry_run_summary(_load_text(args), args.content_id, config.chunking.max_bytes)
        info(log, "dry_run", chunks=len(summary["chunks"]), normalized_len=summary["normalized_len"])
        _emit({"ok": True, "dry_run": True, **summary}, args.json)
        print("DRY_RUN_OK")
        return 0

    if not args.content_id:
        raise SystemExit("--content-id is required (except with --dry-run).")

    service = TTSService(settings)
    try:
        if args.status:
            status = service.query(args.content_id)
            _emit({"ok": True, "content_id": args.content_id, "status": status.status,
                   "url": status.url, "duration_seconds": status.duration_seconds}, args.json)
            return 0

        text = _load_text(args)
        result = asyncio.run(_generate(service, args.content_id, text))
        _emit({
            "ok": True,
            "content_id": result.content_id,
            "url": result.url,
            "path": str(service.artifacts.path_for(result.key)),
            "duration_seconds": result.duration_seconds,
            "chunk_count": result.chunk_count,
            "file_size_bytes": result.file_size_bytes,
            "cache_status": result.cache_status,
        }, args.json)
        print("CLI_OK")
        return 0

    except TTSError as e:
        _emit(e.to_dict(), args.json)
        return 1


async def _generate(service: TTSService, content_id: str, text: str):
    try:
        return await service.generate(content_id, text)
    finally:
        await service.aclose()


if __name__ == "__main__":
    raise SystemExit(main())
