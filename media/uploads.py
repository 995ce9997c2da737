"""
media/uploads.py -- Stage multipart uploads on local disk.

Media hosts upload from a local path, so each incoming UploadFile is first
written to Settings.upload_temp_dir under a unique name:
  <original stem>-<epoch ms>-<random>.<ext>

The caller owns the staged file and must call discard_temp() once the media
host is done with it, success or failure.
"""

from __future__ import annotations

import secrets
import time
from pathlib import Path

from fastapi import UploadFile

_ALLOWED_SUFFIXES = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic"}


class UploadRejected(Exception):
    """The uploaded file is empty, too large, or not an image type we accept."""


def has_file(upload: UploadFile | None) -> bool:
    """True if the multipart field was present and carried a filename."""
    return upload is not None and bool(upload.filename)


async def save_temp_upload(upload: UploadFile, temp_dir: Path, max_bytes: int) -> Path:
    """Write upload to temp_dir and return the staged path.

    Size guard: reads at most max_bytes + 1 and rejects if over the limit,
    so an oversized body never lands on disk in full.
    """
    filename = Path(upload.filename or "upload")
    suffix = filename.suffix.lower()
    if suffix not in _ALLOWED_SUFFIXES:
        raise UploadRejected(f"Unsupported file type '{suffix or filename.name}'.")

    raw = await upload.read(max_bytes + 1)
    if not raw:
        raise UploadRejected("Uploaded file is empty.")
    if len(raw) > max_bytes:
        raise UploadRejected(f"Upload must be {max_bytes // (1024 * 1024)} MB or smaller.")

    temp_dir.mkdir(parents=True, exist_ok=True)
    stem = "".join(ch for ch in filename.stem if ch.isalnum() or ch in "-_")[:40] or "upload"
    target = temp_dir / f"{stem}-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"
    target.write_bytes(raw)
    return target


def discard_temp(path: Path | None) -> None:
    if path is not None:
        path.unlink(missing_ok=True)
