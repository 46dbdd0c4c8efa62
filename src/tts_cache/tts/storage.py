"""
Artifact and Metadata Storage.

Two stores live here:

    ArtifactStore     - audio files, one per (content id, text fingerprint)
    JsonMetadataStore - one JSON record per content id (TTSRecord)

File Organization:
    {storage.base_dir}/                 served under storage.url_prefix
        42_1a2b3c4d.mp3
        42_9f8e7d6c.mp3                 older version (retention="all")
        essay-7_0badc0de.mp3

    {storage.metadata_dir}/
        42.json
        essay-7.json

Storage Keys:
    ``derive_key(content_id, normalized_text)`` is the content id plus the
    first 8 hex characters of the MD5 of the normalized text. Unchanged text
    maps to the same file, so regenerating is idempotent; any edit yields a
    new file name, which also busts browser and CDN caches.

Writes are atomic (temp file + rename) in both stores so a crash never
leaves a truncated artifact or record behind.

Usage:
    from tts_cache.tts.storage import ArtifactStore, JsonMetadataStore, derive_key

    artifacts = ArtifactStore("./public/tts", url_prefix="/tts", extension="mp3")
    key = derive_key("42", normalized)
    artifacts.write(key, audio_bytes)
    artifacts.url_for(key)          # "/tts/42_1a2b3c4d.mp3"
"""
from __future__ import annotations

import hashlib
import json
import os
import re
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from tts_cache.core.errors import InvalidTransitionError, StorageError
from tts_cache.core.logging import debug, get_logger, info, verbose, warn
from tts_cache.utils.timeit import timeit

_LOG = get_logger("tts-cache.storage")

FINGERPRINT_LENGTH = 8

# Content ids become file names; keep them to a portable character set
_SAFE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,159}$")


def is_safe_id(value: str) -> bool:
    return bool(_SAFE_ID_RE.match(value)) and ".." not in value


def fingerprint(normalized_text: str) -> str:
    """First 8 hex characters of the MD5 of the normalized text."""
    return hashlib.md5(normalized_text.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def derive_key(content_id: str, normalized_text: str) -> str:
    """
    Storage key for an artifact.

    Example:
        >>> derive_key("42", "hello")
        '42_5d41402a'
    """
    return f"{content_id}_{fingerprint(normalized_text)}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _atomic_write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # Per-writer temp name so concurrent writers never share one
    tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        tmp.write_bytes(data)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


# =============================================================================
# Record status state machine
# =============================================================================

class Status:
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


ALL_STATUSES = (Status.PENDING, Status.GENERATING, Status.COMPLETED, Status.FAILED)

# generating -> generating restarts an attempt left behind by a crashed process
ALLOWED_TRANSITIONS = {
    Status.PENDING: frozenset({Status.GENERATING}),
    Status.GENERATING: frozenset({Status.GENERATING, Status.COMPLETED, Status.FAILED}),
    Status.COMPLETED: frozenset({Status.GENERATING}),
    Status.FAILED: frozenset({Status.GENERATING}),
}


def check_transition(current: str, target: str) -> None:
    """
    Raises:
        InvalidTransitionError: If ``current -> target`` is not allowed.
    """
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current, target)


@dataclass
class TTSRecord:
    """
    Latest generation state for one content id.

    Attributes:
        content_id: Content identifier (also the metadata file name).
        fingerprint: Fingerprint of the text the record describes.
        status: pending | generating | completed | failed.
        url: Public URL of the artifact (completed only).
        duration_seconds: Playback duration (estimate unless measured).
        file_size_bytes: Artifact size.
        chunk_count: Number of provider calls that built the artifact.
        generated_at: ISO-8601 UTC time of the last successful generation.
        error: Error code of the last failed attempt.
        updated_at: ISO-8601 UTC time of the last change.
    """
    content_id: str
    status: str = Status.PENDING
    fingerprint: Optional[str] = None
    url: Optional[str] = None
    duration_seconds: Optional[int] = None
    file_size_bytes: Optional[int] = None
    chunk_count: Optional[int] = None
    generated_at: Optional[str] = None
    error: Optional[str] = None
    updated_at: str = field(default_factory=utc_now_iso)

    def transition(self, target: str, **changes: Any) -> "TTSRecord":
        """
        Return a copy moved to ``target`` with ``changes`` applied.

        Raises:
            InvalidTransitionError: If the move is not allowed.
        """
        check_transition(self.status, target)
        data = asdict(self)
        data.update(changes)
        data["status"] = target
        data["updated_at"] = utc_now_iso()
        return TTSRecord(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TTSRecord":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if known.get("status") not in ALL_STATUSES:
            known["status"] = Status.PENDING
        return cls(**known)


# =============================================================================
# Artifact files
# =============================================================================

class ArtifactStore:
    """
    Write-once audio files addressed by storage key.

    Args:
        base_dir: Directory holding the files (mounted for static serving).
        url_prefix: Public URL prefix the directory is served under.
        extension: File extension for the configured audio format.
    """

    def __init__(self, base_dir: str, url_prefix: str = "/tts", extension: str = "mp3"):
        self._base_dir = Path(base_dir)
        self._url_prefix = "/" + url_prefix.strip("/")
        self._extension = extension.lstrip(".")

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @property
    def url_prefix(self) -> str:
        return self._url_prefix

    @property
    def extension(self) -> str:
        return self._extension

    def path_for(self, key: str) -> Path:
        if not is_safe_id(key):
            raise ValueError(f"unsafe storage key: {key!r}")
        return self._base_dir / f"{key}.{self._extension}"

    def url_for(self, key: str) -> str:
        return f"{self._url_prefix}/{key}.{self._extension}"

    def write(self, key: str, data: bytes) -> Dict[str, float]:
        """
        Persist ``data`` under ``key`` atomically.

        Rewriting a key with the same bytes leaves the same file behind.

        Returns:
            Timing dict with 'storage_write'.

        Raises:
            StorageError: If the file cannot be written.
        """
        timings: Dict[str, float] = {}
        path = self.path_for(key)
        with timeit("storage_write") as t:
            try:
                _atomic_write(path, data)
            except OSError as e:
                warn(_LOG, "storage_write_error", key=key, error=str(e))
                raise StorageError("failed to write audio artifact", {"key": key}) from e
        timings["storage_write"] = t.seconds
        info(_LOG, "saved", key=key, bytes=len(data), seconds=round(timings["storage_write"], 4))
        return timings

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def key_from_url(self, url: str) -> Optional[str]:
        """Storage key for a URL produced by ``url_for``, None if it isn't one."""
        prefix = self._url_prefix + "/"
        suffix = "." + self._extension
        if not url or not url.startswith(prefix) or not url.endswith(suffix):
            return None
        key = url[len(prefix):-len(suffix)]
        return key if is_safe_id(key) else None

    def exists_url(self, url: Optional[str]) -> bool:
        key = self.key_from_url(url or "")
        return key is not None and self.exists(key)

    def read(self, key: str) -> Optional[bytes]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            warn(_LOG, "storage_read_error", key=key, error=str(e))
            return None

    def prune(self, content_id: str, keep_key: str) -> int:
        """
        Delete older artifacts of ``content_id``, keeping ``keep_key``.

        Returns:
            Number of files removed.
        """
        if not self._base_dir.is_dir():
            return 0
        pattern = re.compile(
            rf"^{re.escape(content_id)}_[0-9a-f]{{{FINGERPRINT_LENGTH}}}\.{re.escape(self._extension)}$"
        )
        keep_name = f"{keep_key}.{self._extension}"
        removed = 0
        for path in self._base_dir.iterdir():
            if path.name == keep_name or not pattern.match(path.name):
                continue
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                verbose(_LOG, "prune_file_error", file=path.name, error=str(e))
        if removed:
            info(_LOG, "pruned", content_id=content_id, files_removed=removed)
        return removed

    def get_storage_info(self) -> Dict[str, Any]:
        """File count and total bytes of stored artifacts."""
        file_count = 0
        total_bytes = 0
        if self._base_dir.is_dir():
            for path in self._base_dir.glob(f"*.{self._extension}"):
                try:
                    total_bytes += path.stat().st_size
                    file_count += 1
                except OSError:
                    continue
        return {
            "base_dir": str(self._base_dir),
            "url_prefix": self._url_prefix,
            "file_count": file_count,
            "total_bytes": total_bytes,
        }


# =============================================================================
# Metadata records
# =============================================================================

class MetadataStore:
    """
    Persistence for TTSRecord, keyed by content id.

    Subclasses must implement get/put/delete.
    """

    def get(self, content_id: str) -> Optional[TTSRecord]:
        raise NotImplementedError

    def put(self, record: TTSRecord) -> None:
        raise NotImplementedError

    def delete(self, content_id: str) -> bool:
        raise NotImplementedError


class JsonMetadataStore(MetadataStore):
    """
    One JSON document per content id under ``base_dir``.

    Persisted shape:
        {"content_id": "42", "status": "completed", "fingerprint": "1a2b3c4d",
         "url": "/tts/42_1a2b3c4d.mp3", "duration_seconds": 120,
         "file_size_bytes": 1843200, "chunk_count": 3,
         "generated_at": "...", "error": null, "updated_at": "..."}
    """

    def __init__(self, base_dir: str):
        self._base_dir = Path(base_dir)

    def _path(self, content_id: str) -> Path:
        if not is_safe_id(content_id):
            raise ValueError(f"unsafe content id: {content_id!r}")
        return self._base_dir / f"{content_id}.json"

    def get(self, content_id: str) -> Optional[TTSRecord]:
        path = self._path(content_id)
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            warn(_LOG, "record_read_error", content_id=content_id, error=str(e))
            return None
        if not isinstance(data, dict):
            warn(_LOG, "record_malformed", content_id=content_id)
            return None
        data.setdefault("content_id", content_id)
        return TTSRecord.from_dict(data)

    def put(self, record: TTSRecord) -> None:
        """
        Raises:
            StorageError: If the record cannot be written.
        """
        path = self._path(record.content_id)
        payload = json.dumps(record.to_dict(), ensure_ascii=False, indent=2).encode("utf-8")
        try:
            _atomic_write(path, payload)
        except OSError as e:
            warn(_LOG, "record_write_error", content_id=record.content_id, error=str(e))
            raise StorageError("failed to write metadata record", {"content_id": record.content_id}) from e
        debug(_LOG, "record_saved", content_id=record.content_id, status=record.status)

    def delete(self, content_id: str) -> bool:
        path = self._path(content_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError("failed to delete metadata record", {"content_id": content_id}) from e
        return True
