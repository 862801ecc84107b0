from __future__ import annotations

import enum
import re
from dataclasses import dataclass, replace
from typing import Optional

from pastebox.services import locator as loc
from pastebox.services.lifecycle import SECONDS_PER_DAY

_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)


class Privacy(str, enum.Enum):
    PUBLIC = "public"
    READONLY = "readonly"
    PRIVATE = "private"
    SECRET = "secret"

    @property
    def encrypt_server(self) -> bool:
        # content is encrypted at rest
        return self in (Privacy.PRIVATE, Privacy.SECRET)

    @property
    def encrypt_client(self) -> bool:
        return self is Privacy.SECRET

    @property
    def readonly(self) -> bool:
        return self is Privacy.READONLY

    @property
    def listed(self) -> bool:
        return self in (Privacy.PUBLIC, Privacy.READONLY)


@dataclass(frozen=True)
class FileRef:
    locator: loc.Locator
    size: int

    @property
    def display_name(self) -> str:
        return loc.display_name(self.locator)

    def embeddable(self) -> bool:
        return loc.embeddable(self.locator)


@dataclass
class Paste:
    id: int
    content: str = ""
    file: Optional[FileRef] = None
    privacy: Privacy = Privacy.PUBLIC
    encrypted_key: Optional[str] = None
    created: int = 0
    expiration: int = 0
    last_read: int = 0
    read_count: int = 0
    burn_after_reads: int = 0
    editable: bool = True
    extension: str = ""
    paste_type: str = "text"

    @property
    def encrypt_server(self) -> bool:
        return self.privacy.encrypt_server

    @property
    def encrypt_client(self) -> bool:
        return self.privacy.encrypt_client

    @property
    def readonly(self) -> bool:
        return self.privacy.readonly

    @property
    def protected(self) -> bool:
        """Deleting requires a password."""
        return self.readonly or self.encrypt_server or not self.editable

    def has_file(self) -> bool:
        return self.file is not None

    def total_size(self) -> int:
        size = len(self.content.encode("utf-8"))
        if self.file is not None:
            size += self.file.size
        return size

    def file_embeddable(self) -> bool:
        return self.has_file() and self.file.embeddable() and not self.encrypt_server

    def last_read_days_ago(self, now: int) -> int:
        return max(0, now - self.last_read) // SECONDS_PER_DAY

    def copy(self, **changes) -> "Paste":
        return replace(self, **changes)


def classify_content(content: str) -> str:
    return "url" if _URL_RE.fullmatch(content) else "text"


def total_size_as_string(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size // 1024} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size // (1024 * 1024)} MB"
    return f"{size // (1024 * 1024 * 1024)} GB"
