"""
realtyhub/test_uploads.py

Tests for persisting incoming image files.

Tests verify:
1. Accepted files land in the upload dir under generated names
2. A read failure mid-copy leaves no partial file behind
3. A rejected file in a batch removes the files already written
4. Oversized files are removed before the rejection surfaces
"""

import io
import os

import pytest

from realtyhub import uploads
from realtyhub.errors import MalformedInput


class FakeUpload:
    """Minimal stand-in for a multipart UploadFile."""

    def __init__(self, filename, data=b"\xff" * 64, content_type="image/jpeg", stream=None):
        self.filename = filename
        self.content_type = content_type
        self.file = stream if stream is not None else io.BytesIO(data)


class DroppedStream:
    """Returns one chunk, then fails like a client disconnect."""

    def __init__(self):
        self.calls = 0

    def read(self, size=-1):
        self.calls += 1
        if self.calls == 1:
            return b"\xff" * 128
        raise OSError("connection reset by peer")


@pytest.fixture
def target_dir(tmp_path):
    return str(tmp_path / "incoming")


def test_saves_under_generated_name(target_dir):
    saved = uploads.save_upload(FakeUpload("Front Door.JPG", b"x" * 10), target_dir)

    assert saved.storage_key.startswith("property-")
    assert saved.storage_key.endswith(".jpg")
    assert saved.original_filename == "Front Door.JPG"
    assert uploads.size_of(saved) == 10
    assert uploads.public_url(saved.storage_key) == f"/uploads/{saved.storage_key}"


def test_failed_copy_leaves_no_partial_file(target_dir):
    with pytest.raises(OSError):
        uploads.save_upload(FakeUpload("a.jpg", stream=DroppedStream()), target_dir)
    assert os.listdir(target_dir) == []


def test_failed_copy_in_batch_removes_earlier_files(target_dir):
    batch = [FakeUpload("a.jpg"), FakeUpload("b.png", content_type="image/png", stream=DroppedStream())]
    with pytest.raises(OSError):
        uploads.save_uploads(batch, target_dir)
    assert os.listdir(target_dir) == []


def test_rejected_type_removes_earlier_files(target_dir):
    batch = [FakeUpload("a.jpg"), FakeUpload("notes.txt", content_type="text/plain")]
    with pytest.raises(MalformedInput) as exc:
        uploads.save_uploads(batch, target_dir)
    assert exc.value.field == "images"
    assert os.listdir(target_dir) == []


def test_oversized_file_is_removed(target_dir, monkeypatch):
    monkeypatch.setattr(uploads, "MAX_UPLOAD_BYTES", 10)
    with pytest.raises(MalformedInput):
        uploads.save_upload(FakeUpload("big.jpg", b"x" * 11), target_dir)
    assert os.listdir(target_dir) == []
