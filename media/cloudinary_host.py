"""
media/cloudinary_host.py -- Cloudinary media host over the REST upload API.

Upload:  POST https://api.cloudinary.com/v1_1/<cloud>/auto/upload
Destroy: POST https://api.cloudinary.com/v1_1/<cloud>/<resource_type>/destroy

Both calls are signed: the request parameters (excluding file, api_key and
resource_type) are sorted, joined as k=v pairs with "&", the API secret is
appended, and the SHA-1 hex digest is sent as "signature".

delete() is given the delivery URL stored on the user record, so the public
id and resource type are recovered from the URL path:
  https://res.cloudinary.com/<cloud>/<resource_type>/upload/v<version>/<public_id>.<ext>
"""

from __future__ import annotations

import hashlib
import logging
import re
import time
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from media.host import UploadResult

logger = logging.getLogger("uservault.media")

CLOUDINARY_API = "https://api.cloudinary.com/v1_1/{cloud_name}"

_VERSION_RE = re.compile(r"^v\d+$")


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Return the Cloudinary request signature for params."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] not in ("", None))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()  # noqa: S324 -- required by the API


def parse_delivery_url(url: str) -> Optional[tuple[str, str]]:
    """Return (resource_type, public_id) for a Cloudinary delivery URL, or None.

    Raw assets keep their extension in the public id; images and videos do not.
    """
    parts = [p for p in urlparse(url).path.split("/") if p]
    # [cloud, resource_type, "upload", ("v123",) *public_id_parts]
    if len(parts) < 4 or parts[2] != "upload":
        return None
    resource_type = parts[1]
    rest = parts[3:]
    if rest and _VERSION_RE.match(rest[0]):
        rest = rest[1:]
    if not rest:
        return None
    public_id = "/".join(rest)
    if resource_type != "raw":
        public_id = str(Path(public_id).with_suffix("")) if Path(public_id).suffix else public_id
    return resource_type, public_id


class CloudinaryMediaHost:
    def __init__(self, cloud_name: str, api_key: str, api_secret: str, session: requests.Session | None = None) -> None:
        self.base_url = CLOUDINARY_API.format(cloud_name=cloud_name)
        self.api_key = api_key
        self.api_secret = api_secret
        # Shared session for connection pooling; injectable for tests.
        self._session = session or requests.Session()
        self._session.max_redirects = 3

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {**params, "api_key": self.api_key, "signature": sign_params(params, self.api_secret)}

    def upload(self, local_path: Path) -> Optional[UploadResult]:
        if not local_path or not local_path.is_file():
            return None
        try:
            with local_path.open("rb") as fh:
                resp = self._session.post(
                    f"{self.base_url}/auto/upload",
                    data=self._signed({}),
                    files={"file": (local_path.name, fh)},
                    timeout=30,
                )
            resp.raise_for_status()
            body = resp.json()
            result = UploadResult(
                url=body.get("secure_url") or body["url"],
                public_id=body["public_id"],
                resource_type=body.get("resource_type", "image"),
                bytes=int(body.get("bytes", 0)),
            )
        except (requests.RequestException, KeyError, ValueError) as e:
            logger.warning("Cloudinary upload failed for %s: %s", local_path.name, e)
            return None
        logger.info("Uploaded %s to Cloudinary as %s", local_path.name, result.public_id)
        return result

    def delete(self, url: str) -> bool:
        parsed = parse_delivery_url(url) if url else None
        if parsed is None:
            return False
        resource_type, public_id = parsed
        try:
            resp = self._session.post(
                f"{self.base_url}/{resource_type}/destroy",
                data=self._signed({"public_id": public_id}),
                timeout=10,
            )
            resp.raise_for_status()
            return resp.json().get("result") == "ok"
        except (requests.RequestException, ValueError) as e:
            logger.warning("Cloudinary delete failed for %s: %s", public_id, e)
            return False
