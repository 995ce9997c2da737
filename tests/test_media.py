"""
tests/test_media.py -- Media hosts and upload staging.

Cloudinary calls go through a MagicMock requests.Session; no network.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests
from starlette.datastructures import UploadFile

from core.config import Settings
from media.cloudinary_host import CloudinaryMediaHost, parse_delivery_url, sign_params
from media.host import build_media_host
from media.local import LocalMediaHost
from media.uploads import UploadRejected, discard_temp, has_file, save_temp_upload

# ---------------------------------------------------------------------------
# Cloudinary helpers
# ---------------------------------------------------------------------------


def test_sign_params_sorts_and_skips_empty() -> None:
    params = {"timestamp": "1315060510", "public_id": "sample", "eager": ""}
    expected = hashlib.sha1(b"public_id=sample&timestamp=1315060510abcd").hexdigest()
    assert sign_params(params, "abcd") == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://res.cloudinary.com/demo/image/upload/v1570979139/folder/sample.jpg", ("image", "folder/sample")),
        ("https://res.cloudinary.com/demo/image/upload/sample.png", ("image", "sample")),
        ("https://res.cloudinary.com/demo/raw/upload/v1/docs/readme.txt", ("raw", "docs/readme.txt")),
        ("https://res.cloudinary.com/demo/image/fetch/v1/x.png", None),
        ("https://res.cloudinary.com/demo/image/upload/v12", None),
        ("/media/abc.png", None),
    ],
)
def test_parse_delivery_url(url: str, expected) -> None:
    assert parse_delivery_url(url) == expected


def _mock_response(payload: dict) -> MagicMock:
    resp = MagicMock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class TestCloudinaryHost:
    def _host(self, session: MagicMock) -> CloudinaryMediaHost:
        return CloudinaryMediaHost("demo", "key123", "secret456", session=session)

    def test_upload(self, tmp_path: Path) -> None:
        src = tmp_path / "me.png"
        src.write_bytes(b"png")
        session = MagicMock()
        session.post.return_value = _mock_response(
            {
                "secure_url": "https://res.cloudinary.com/demo/image/upload/v1/abc.png",
                "url": "http://res.cloudinary.com/demo/image/upload/v1/abc.png",
                "public_id": "abc",
                "resource_type": "image",
                "bytes": 3,
            }
        )
        result = self._host(session).upload(src)
        assert result is not None
        assert result.url.startswith("https://")
        assert result.public_id == "abc"
        assert result.bytes == 3

        url = session.post.call_args.args[0]
        data = session.post.call_args.kwargs["data"]
        assert url == "https://api.cloudinary.com/v1_1/demo/auto/upload"
        assert data["api_key"] == "key123"
        assert data["signature"] == sign_params({"timestamp": data["timestamp"]}, "secret456")

    def test_upload_network_failure_returns_none(self, tmp_path: Path) -> None:
        src = tmp_path / "me.png"
        src.write_bytes(b"png")
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("down")
        assert self._host(session).upload(src) is None

    def test_upload_bad_payload_returns_none(self, tmp_path: Path) -> None:
        src = tmp_path / "me.png"
        src.write_bytes(b"png")
        session = MagicMock()
        session.post.return_value = _mock_response({"error": {"message": "Invalid Signature"}})
        assert self._host(session).upload(src) is None

    def test_upload_missing_file(self, tmp_path: Path) -> None:
        session = MagicMock()
        assert self._host(session).upload(tmp_path / "gone.png") is None
        session.post.assert_not_called()

    def test_delete(self) -> None:
        session = MagicMock()
        session.post.return_value = _mock_response({"result": "ok"})
        assert self._host(session).delete("https://res.cloudinary.com/demo/image/upload/v9/users/abc.jpg") is True
        url = session.post.call_args.args[0]
        assert url == "https://api.cloudinary.com/v1_1/demo/image/destroy"
        assert session.post.call_args.kwargs["data"]["public_id"] == "users/abc"

    def test_delete_not_found(self) -> None:
        session = MagicMock()
        session.post.return_value = _mock_response({"result": "not found"})
        assert self._host(session).delete("https://res.cloudinary.com/demo/image/upload/v9/abc.jpg") is False

    def test_delete_foreign_url_skips_request(self) -> None:
        session = MagicMock()
        assert self._host(session).delete("https://example.com/avatar.png") is False
        assert self._host(session).delete("") is False
        session.post.assert_not_called()


# ---------------------------------------------------------------------------
# Local host
# ---------------------------------------------------------------------------


class TestLocalHost:
    def test_upload_and_delete(self, tmp_path: Path) -> None:
        src = tmp_path / "in.PNG"
        src.write_bytes(b"data")
        host = LocalMediaHost(tmp_path / "media", "/media/")
        result = host.upload(src)
        assert result.url.startswith("/media/")
        assert result.url.endswith(".png")
        stored = tmp_path / "media" / Path(result.url).name
        assert stored.read_bytes() == b"data"
        assert host.delete(result.url) is True
        assert not stored.exists()

    def test_delete_ignores_foreign_urls(self, tmp_path: Path) -> None:
        host = LocalMediaHost(tmp_path / "media")
        assert host.delete("https://res.cloudinary.com/demo/image/upload/a.png") is False
        assert host.delete("") is False

    def test_delete_stays_inside_root(self, tmp_path: Path) -> None:
        outside = tmp_path / "keep.txt"
        outside.write_text("x")
        host = LocalMediaHost(tmp_path / "media")
        host.delete("/media/../keep.txt")
        assert outside.exists()

    def test_upload_missing_source(self, tmp_path: Path) -> None:
        host = LocalMediaHost(tmp_path / "media")
        assert host.upload(tmp_path / "missing.png") is None


def test_build_media_host_selects_backend(tmp_path: Path) -> None:
    common = {"debug": False, "access_token_secret": "a" * 32, "refresh_token_secret": "r" * 32}
    local = build_media_host(Settings(**common, media_root=str(tmp_path / "m")))
    assert isinstance(local, LocalMediaHost)
    cloud = build_media_host(
        Settings(
            **common,
            media_backend="cloudinary",
            cloudinary_cloud_name="demo",
            cloudinary_api_key="k",
            cloudinary_api_secret="s",
        )
    )
    assert isinstance(cloud, CloudinaryMediaHost)


# ---------------------------------------------------------------------------
# Upload staging
# ---------------------------------------------------------------------------


def _upload(name: str, body: bytes) -> UploadFile:
    return UploadFile(file=io.BytesIO(body), filename=name)


class TestStaging:
    def test_save_and_discard(self, tmp_path: Path) -> None:
        path = asyncio.run(save_temp_upload(_upload("My Photo!.JPG", b"jpeg"), tmp_path / "temp", 1024))
        assert path.parent == tmp_path / "temp"
        assert path.suffix == ".jpg"
        assert path.name.startswith("MyPhoto-")
        assert path.read_bytes() == b"jpeg"
        discard_temp(path)
        assert not path.exists()
        discard_temp(path)
        discard_temp(None)

    def test_too_large(self, tmp_path: Path) -> None:
        with pytest.raises(UploadRejected):
            asyncio.run(save_temp_upload(_upload("big.png", b"x" * 11), tmp_path, 10))
        assert not list(tmp_path.iterdir())

    def test_empty(self, tmp_path: Path) -> None:
        with pytest.raises(UploadRejected):
            asyncio.run(save_temp_upload(_upload("empty.png", b""), tmp_path, 10))

    def test_unsupported_type(self, tmp_path: Path) -> None:
        with pytest.raises(UploadRejected):
            asyncio.run(save_temp_upload(_upload("script.sh", b"#!/bin/sh"), tmp_path, 100))

    def test_has_file(self) -> None:
        assert has_file(_upload("a.png", b"1"))
        assert not has_file(None)
        assert not has_file(_upload("", b""))
