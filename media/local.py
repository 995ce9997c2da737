"""
media/local.py -- Filesystem-backed media host.

Files are copied into a root directory under a random name that keeps the
original extension. The returned URL is url_prefix + "/" + name; api/main.py
mounts the root directory at that prefix with StaticFiles.

delete() only ever acts on the final path component of the URL, so a crafted
URL cannot reach outside the root directory.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from media.host import UploadResult

logger = logging.getLogger("uservault.media")


class LocalMediaHost:
    def __init__(self, root: Path, url_prefix: str = "/media") -> None:
        self.root = root
        self.url_prefix = url_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def upload(self, local_path: Path) -> Optional[UploadResult]:
        name = f"{uuid.uuid4().hex}{local_path.suffix.lower()}"
        target = self.root / name
        try:
            shutil.copyfile(local_path, target)
        except OSError as e:
            logger.warning("Local media upload failed for %s: %s", local_path.name, e)
            return None
        return UploadResult(
            url=f"{self.url_prefix}/{name}",
            public_id=name,
            resource_type="image",
            bytes=target.stat().st_size,
        )

    def delete(self, url: str) -> bool:
        """Remove the asset behind url. Returns False if url is not ours."""
        if not url or not url.startswith(self.url_prefix + "/"):
            return False
        name = Path(url).name
        try:
            (self.root / name).unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Local media delete failed for %s: %s", name, e)
            return False
        return True
