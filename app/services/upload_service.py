"""
Upload helper: turns a user-supplied file into a stored blob and a retrievable URL.

Storage keys look like  <folder>/<epoch-millis>_<sanitized-name>
e.g. "profile-pictures/1735689600123_my-photo-1.png".
The millisecond prefix is what keeps keys apart (good enough for a sign-up form,
not a uniqueness guarantee), and it also keeps the key valid when nothing of the
original name survives sanitizing.
"""
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from app.services.backends import BlobHandle, BlobStore

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^\w\-]", re.ASCII)
_HYPHEN_RUNS = re.compile(r"-+")


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class StoredFile:
    handle: BlobHandle
    url: str

    @property
    def key(self) -> str:
        return self.handle.key


def sanitize_filename(filename: str) -> str:
    """
    "My Photo #1.PNG" -> "my-photo-1.png", "....jpg" -> ".jpg".
    Only the base name is cleaned; the extension is lowercased and kept as-is.
    """
    dot = filename.rfind(".")
    if dot == -1:
        name, extension = filename, ""
    else:
        name, extension = filename[:dot], filename[dot:]

    name = _WHITESPACE.sub("-", name.lower())
    name = _DISALLOWED.sub("", name)
    name = _HYPHEN_RUNS.sub("-", name).strip("-")
    return name + extension.lower()


def epoch_millis() -> int:
    return int(time.time() * 1000)


def build_storage_key(folder: str, filename: str, millis: Optional[int] = None) -> str:
    if millis is None:
        millis = epoch_millis()
    return f"{folder}/{millis}_{sanitize_filename(filename)}"


async def upload_file(blobs: BlobStore, file: UploadedFile, folder: str) -> StoredFile:
    key = build_storage_key(folder, file.filename)
    handle = await blobs.upload(key, file.data, file.content_type)
    url = await blobs.get_url(handle)
    logger.info("Uploaded %s (%d bytes)", handle.key, len(file.data))
    return StoredFile(handle=handle, url=url)
