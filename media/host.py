"""
media/host.py -- MediaHost contract and backend selection.

A media host takes a file that has already been staged on local disk and
returns a public URL for it. Two implementations:

  LocalMediaHost       -- copies into Settings.media_root, served by the app
                          under Settings.media_url_prefix. Default; used in
                          dev and tests.
  CloudinaryMediaHost  -- signed uploads to the Cloudinary REST API.

Failure contract:
  upload() returns None on any failure and logs a warning.
  delete() returns False on any failure and logs a warning.
Neither raises for an upstream problem -- the route layer decides whether a
failure aborts the request (avatar on register) or is tolerated (deleting
the previous avatar).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from core.config import Settings


@dataclass(frozen=True)
class UploadResult:
    """What a media host returns for a stored asset."""

    url: str
    public_id: str
    resource_type: str = "image"
    bytes: int = 0


class MediaHost(Protocol):
    def upload(self, local_path: Path) -> Optional[UploadResult]: ...

    def delete(self, url: str) -> bool: ...


def build_media_host(settings: Settings) -> MediaHost:
    """Return the media host selected by Settings.media_backend."""
    if settings.media_backend == "cloudinary":
        from media.cloudinary_host import CloudinaryMediaHost

        return CloudinaryMediaHost(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )
    from media.local import LocalMediaHost

    return LocalMediaHost(root=Path(settings.media_root), url_prefix=settings.media_url_prefix)
