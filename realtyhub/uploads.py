"""
realtyhub/uploads.py

Image upload handling for listings.

The HTTP layer persists multipart files into UPLOAD_DIR with save_uploads();
the listing manager only sees UploadedFile records, stats their sizes, and
deletes them with discard_files() whenever an operation is rejected or rolled
back.
"""

from __future__ import annotations

import os
import secrets
import shutil
import time
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

try:
    from realtyhub.config import (
        ALLOWED_IMAGE_EXTENSIONS,
        IS_DEV,
        MAX_UPLOAD_BYTES,
        MAX_UPLOAD_FILES,
        UPLOAD_URL_PREFIX,
    )
    from realtyhub.errors import MalformedInput, PartialCleanupFailure
except ModuleNotFoundError:
    from config import (
        ALLOWED_IMAGE_EXTENSIONS,
        IS_DEV,
        MAX_UPLOAD_BYTES,
        MAX_UPLOAD_FILES,
        UPLOAD_URL_PREFIX,
    )
    from errors import MalformedInput, PartialCleanupFailure


@dataclass
class UploadedFile:
    """An image already written to local disk, not yet owned by a listing."""
    path: str
    original_filename: str
    mime_type: Optional[str] = None

    @property
    def storage_key(self) -> str:
        return os.path.basename(self.path)


def size_of(upload: UploadedFile) -> int:
    return os.path.getsize(upload.path)


def public_url(storage_key: str) -> str:
    return f"{UPLOAD_URL_PREFIX}/{storage_key}"


# ---------------------------------------------------------
# Cleanup
# ---------------------------------------------------------

def delete_file(path: str) -> Optional[PartialCleanupFailure]:
    """
    Remove one file. Returns the failure instead of raising.

    A file that is already gone counts as deleted.
    """
    try:
        os.remove(path)
        return None
    except FileNotFoundError:
        return None
    except OSError as e:
        return PartialCleanupFailure(path, str(e))


def discard_files(paths: Iterable[str]) -> List[PartialCleanupFailure]:
    """
    Best-effort deletion of a batch of files.

    Failures are logged and returned, never raised, so a cleanup problem can
    not mask the error that triggered the cleanup.
    """
    failures: List[PartialCleanupFailure] = []
    for path in paths:
        failure = delete_file(path)
        if failure is not None:
            print(f"[UPLOADS] WARNING: {failure.message}")
            failures.append(failure)
        elif IS_DEV:
            print(f"[UPLOADS] Deleted {path}")
    return failures


def discard_uploads(uploads: Iterable[UploadedFile]) -> List[PartialCleanupFailure]:
    return discard_files(u.path for u in uploads)


# ---------------------------------------------------------
# Persisting incoming multipart files
# ---------------------------------------------------------

def _extension(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


def _is_allowed(filename: str, content_type: Optional[str]) -> bool:
    if _extension(filename) not in ALLOWED_IMAGE_EXTENSIONS:
        return False
    if content_type:
        subtype = content_type.split("/")[-1].lower()
        return f".{subtype}" in ALLOWED_IMAGE_EXTENSIONS
    return True


def unique_name(filename: str) -> str:
    """property-<millis>-<random><ext>"""
    millis = int(time.time() * 1000)
    return f"property-{millis}-{secrets.randbelow(10**9)}{_extension(filename)}"


def save_upload(upload: Any, upload_dir: str) -> UploadedFile:
    """
    Write one FastAPI UploadFile into upload_dir.

    Raises MalformedInput for a disallowed type or a file over the per-file
    size cap; an oversized file is removed before raising.
    """
    filename = upload.filename or ""
    content_type = getattr(upload, "content_type", None)
    if not _is_allowed(filename, content_type):
        raise MalformedInput("Invalid file format! Only jpeg, jpg, png, gif, webp allowed", field="images")

    os.makedirs(upload_dir, exist_ok=True)
    dest = os.path.join(upload_dir, unique_name(filename))
    try:
        with open(dest, "wb") as out:
            shutil.copyfileobj(upload.file, out)
    except BaseException:
        # Partial file is not in the caller's list yet
        discard_files([dest])
        raise

    if os.path.getsize(dest) > MAX_UPLOAD_BYTES:
        discard_files([dest])
        raise MalformedInput(
            f"File '{filename}' exceeds the {MAX_UPLOAD_BYTES} byte limit",
            field="images",
        )

    return UploadedFile(path=dest, original_filename=filename, mime_type=content_type)


def save_uploads(uploads: Optional[List[Any]], upload_dir: str) -> List[UploadedFile]:
    """
    Persist a request's files in order. All-or-nothing: if any file is
    rejected, the ones already written are deleted before re-raising.
    """
    uploads = [u for u in (uploads or []) if u is not None and getattr(u, "filename", None)]
    if len(uploads) > MAX_UPLOAD_FILES:
        raise MalformedInput(f"At most {MAX_UPLOAD_FILES} images per request", field="images")

    saved: List[UploadedFile] = []
    try:
        for upload in uploads:
            saved.append(save_upload(upload, upload_dir))
    except BaseException:
        discard_uploads(saved)
        raise

    if IS_DEV and saved:
        print(f"[UPLOADS] Saved {len(saved)} file(s) to {upload_dir}")
    return saved
