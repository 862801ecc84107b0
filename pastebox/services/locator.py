"""Where an attachment's bytes live, and under which name.

A paste's file reference used to be a bare filename; object storage and
server-side encryption were layered on later by tagging that same string.
Inside pastebox the four shapes are explicit types; the tagged string only
exists at the durable index boundary (:func:`to_string` / :func:`parse_locator`):

    s3://attachments/<slug>/<name>   S3File        plain bytes in the bucket
    s3:<name>                        S3Encrypted   data.enc in the bucket
    <name>  (paste encrypted)        LocalEncrypted  data.enc on disk
    <name>  (paste not encrypted)    LocalFile     <name> on disk
"""
from __future__ import annotations

import posixpath
from dataclasses import dataclass
from typing import Union

from pastebox.errors import CodecError

ATTACHMENTS_DIR = "attachments"
ENCRYPTED_FILENAME = "data.enc"
S3_PREFIX = "s3://"
S3_ENCRYPTED_PREFIX = "s3:"

IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".ico", ".svg", ".tiff", ".tif",
    ".jfif", ".pjpeg", ".pjp", ".avif", ".jxl", ".heif",
)
VIDEO_EXTENSIONS = (".mp4", ".mov", ".wmv", ".webm", ".avi", ".flv", ".mkv", ".mts")


@dataclass(frozen=True)
class LocalFile:
    name: str


@dataclass(frozen=True)
class LocalEncrypted:
    name: str


@dataclass(frozen=True)
class S3File:
    # object key without the s3:// scheme, e.g. attachments/<slug>/<name>
    path: str


@dataclass(frozen=True)
class S3Encrypted:
    name: str


Locator = Union[LocalFile, LocalEncrypted, S3File, S3Encrypted]


def sanitize_filename(path: str) -> str:
    """Reduce an uploaded path to a safe filename, or raise CodecError."""
    if path is None:
        raise CodecError("Path did not contain a file name")
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    if name in ("", ".", ".."):
        raise CodecError("Path did not contain a file name")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in name):
        raise CodecError("File name contains control characters")
    name = name.replace(" ", "_")
    if name.startswith(S3_ENCRYPTED_PREFIX):
        raise CodecError("File name collides with the storage prefix")
    if name == ENCRYPTED_FILENAME:
        raise CodecError("File name collides with the encrypted payload name")
    return name


def encode_locator(slug: str, name: str, encrypted: bool, s3: bool) -> Locator:
    if encrypted:
        return S3Encrypted(name) if s3 else LocalEncrypted(name)
    if s3:
        return S3File(f"{ATTACHMENTS_DIR}/{slug}/{name}")
    return LocalFile(name)


def to_string(locator: Locator) -> str:
    if isinstance(locator, S3File):
        return S3_PREFIX + locator.path
    if isinstance(locator, S3Encrypted):
        return S3_ENCRYPTED_PREFIX + locator.name
    return locator.name


def parse_locator(raw: str, encrypted: bool) -> Locator:
    """Decode the legacy string; ``s3://`` must be tested before ``s3:``."""
    if raw.startswith(S3_PREFIX):
        path = raw[len(S3_PREFIX):]
        head, _, name = path.rpartition("/")
        if not head or not name:
            raise CodecError(f"Malformed object storage locator {raw!r}")
        return S3File(path)
    if raw.startswith(S3_ENCRYPTED_PREFIX):
        name = raw[len(S3_ENCRYPTED_PREFIX):]
        if not name:
            raise CodecError(f"Malformed encrypted locator {raw!r}")
        return S3Encrypted(name)
    if not raw:
        raise CodecError("Empty locator")
    return LocalEncrypted(raw) if encrypted else LocalFile(raw)


def is_s3(locator: Locator) -> bool:
    return isinstance(locator, S3File)


def is_s3_encrypted(locator: Locator) -> bool:
    return isinstance(locator, S3Encrypted)


def is_encrypted(locator: Locator) -> bool:
    return isinstance(locator, (LocalEncrypted, S3Encrypted))


def display_name(locator: Locator) -> str:
    if isinstance(locator, S3File):
        return locator.path.rsplit("/", 1)[-1]
    return locator.name


def physical_name(locator: Locator) -> str:
    if is_encrypted(locator):
        return ENCRYPTED_FILENAME
    return display_name(locator)


def storage_path(locator: Locator, slug: str) -> str:
    """The path handed to the storage backend for this locator."""
    if isinstance(locator, S3File):
        return S3_PREFIX + locator.path
    if isinstance(locator, S3Encrypted):
        return f"{S3_PREFIX}{ATTACHMENTS_DIR}/{slug}/{ENCRYPTED_FILENAME}"
    return physical_name(locator)


def is_image(locator: Locator) -> bool:
    return display_name(locator).lower().endswith(IMAGE_EXTENSIONS)


def is_video(locator: Locator) -> bool:
    return display_name(locator).lower().endswith(VIDEO_EXTENSIONS)


def embeddable(locator: Locator) -> bool:
    return is_image(locator) or is_video(locator)


def object_key(path: str) -> str:
    """Strip the ``s3://`` scheme and normalise the object key."""
    key = path[len(S3_PREFIX):] if path.startswith(S3_PREFIX) else path
    key = posixpath.normpath(key)
    if key.startswith(("/", "..")):
        raise CodecError(f"Object key escapes the bucket prefix: {path!r}")
    return key
