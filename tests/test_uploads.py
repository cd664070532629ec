"""
tests/test_uploads.py -- Attachment type/size policy and blob storage paths.
"""

from __future__ import annotations

import pytest

from board.uploads import LocalBlobStore, UploadPolicy


class TestUploadPolicy:
    @pytest.mark.parametrize("name,kind", [("a.jpg", "image"), ("b.WEBP", "image"), ("c.mp4", "video")])
    def test_allowed_types(self, name: str, kind: str) -> None:
        check = UploadPolicy().classify(name, 1024)
        assert check.ok is True
        assert check.kind == kind

    def test_unknown_extension_rejected(self) -> None:
        check = UploadPolicy().classify("payload.svg", 10)
        assert check.ok is False
        assert "Unsupported" in check.error

    def test_size_limits_per_kind(self) -> None:
        policy = UploadPolicy(max_image_bytes=100, max_video_bytes=1000)
        assert policy.classify("a.png", 101).ok is False
        assert policy.classify("a.mp4", 101).ok is True
        assert policy.classify("a.mp4", 1001).ok is False

    def test_empty_file_rejected(self) -> None:
        assert UploadPolicy().classify("a.png", 0).error == "File is empty."


class TestLocalBlobStore:
    def test_save_ignores_client_filename(self, tmp_path) -> None:
        blobs = LocalBlobStore(tmp_path)
        stored = blobs.save(7, "../../etc/passwd.png", b"data")
        assert stored.startswith("posts/7/")
        assert ".." not in stored
        assert blobs.path_for(stored).read_bytes() == b"data"

    def test_path_for_rejects_escape(self, tmp_path) -> None:
        with pytest.raises(ValueError):
            LocalBlobStore(tmp_path).path_for("../outside.png")

    def test_delete(self, tmp_path) -> None:
        blobs = LocalBlobStore(tmp_path)
        stored = blobs.save(1, "a.png", b"x")
        assert blobs.delete(stored) is True
        assert blobs.delete(stored) is False
