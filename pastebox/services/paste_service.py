from __future__ import annotations

import hashlib
import hmac
import secrets
from dataclasses import dataclass
from typing import List, Optional, Tuple

from pastebox.errors import (
    DecryptError,
    FileTooLargeError,
    PasteNotFoundError,
    RequestError,
    StorageError,
    StorageNotFoundError,
    UnauthorizedError,
)
from pastebox.logger import get_logger
from pastebox.models.paste import FileRef, Paste, Privacy, classify_content
from pastebox.services import locator as loc
from pastebox.services.encryptor import decrypt, decrypt_bytes, encrypt, encrypt_bytes
from pastebox.services.lifecycle import expiration_to_timestamp

log = get_logger("service")

MEGABYTE = 1024 * 1024
UPLOADER_COOKIE = "uploader_token"
UPLOADER_TOKEN_SALT = b"pastebox_uploader_salt"


def uploader_token(password: str) -> str:
    """Cookie value proving the holder once knew the uploader password."""
    digest = hashlib.sha256(password.strip().encode("utf-8"))
    digest.update(UPLOADER_TOKEN_SALT)
    return digest.hexdigest()


@dataclass
class UploadedFile:
    filename: str
    data: bytes


@dataclass
class CreationRequest:
    content: str = ""
    privacy: Privacy = Privacy.PUBLIC
    # server passphrase: private content key, readonly ownership proof
    plain_key: str = ""
    # client-held key for secret pastes; never stored or logged
    random_key: str = ""
    expiration: Optional[str] = None
    burn_after: int = 0
    extension: str = ""
    file: Optional[UploadedFile] = None
    # read-only instances: a password or a previously issued token
    uploader_password: str = ""
    uploader_token: str = ""


class PasteService:
    def __init__(self, store, storage, settings):
        self.store = store
        self.storage = storage
        self.settings = settings

    def valid_uploader_token(self, token: Optional[str]) -> bool:
        if not token or not self.settings.uploads_gated:
            return False
        expected = uploader_token(self.settings.uploader_password)
        return hmac.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))

    def login_uploader(self, password: str) -> str:
        """Check the uploader password and return the token to hand out."""
        if not self.settings.uploads_gated:
            raise RequestError("This instance does not use an uploader password")
        expected = self.settings.uploader_password.strip()
        if not hmac.compare_digest(password.strip().encode("utf-8"), expected.encode("utf-8")):
            log.warning("Uploader login failed: incorrect password")
            raise UnauthorizedError()
        return uploader_token(expected)

    def authorize_uploader(self, password: str = "", token: Optional[str] = None) -> None:
        if not self.settings.uploads_gated or self.valid_uploader_token(token):
            return
        self.login_uploader(password)

    def _generate_id(self) -> int:
        return secrets.randbits(self.settings.id_bits)

    def _encryption_key(self, request: CreationRequest) -> str:
        if request.privacy is Privacy.SECRET:
            return request.random_key
        return request.plain_key

    def _validate(self, request: CreationRequest) -> Optional[str]:
        if not request.content and request.file is None:
            raise RequestError("A paste needs content or a file")
        if request.privacy.encrypt_server and not request.content and not request.file.data:
            # nothing to encrypt means nothing could ever prove the key
            raise RequestError("An encrypted paste needs non-empty content or file")
        if request.privacy in (Privacy.PRIVATE, Privacy.READONLY) and not request.plain_key:
            raise RequestError(f"A {request.privacy.value} paste needs a password")
        if request.privacy is Privacy.SECRET and not request.random_key:
            raise RequestError("A secret paste needs a client key")
        if request.file is None:
            return None
        if self.settings.no_file_upload:
            raise RequestError("File uploads are disabled")
        size = len(request.file.data)
        if (
            request.privacy.encrypt_server
            and size > self.settings.max_file_size_encrypted_mb * MEGABYTE
        ) or size > self.settings.max_file_size_unencrypted_mb * MEGABYTE:
            raise FileTooLargeError("File exceeded size limit.")
        return loc.sanitize_filename(request.file.filename)

    def create(self, request: CreationRequest) -> Paste:
        self.authorize_uploader(request.uploader_password, request.uploader_token)
        filename = self._validate(request)
        now = self.store.now()
        paste_id = self.store.reserve_id(self._generate_id)
        try:
            paste = self._seal(paste_id, request, now)
            if request.file is not None:
                paste.file = self._save_file(paste, request, filename)
            try:
                self.store.insert(paste)
            except Exception:
                if paste.file is not None:
                    self.store.discard_file(paste, defer=False)
                raise
        except Exception:
            self.store.release_id(paste_id)
            raise
        log.info(
            "Created %s paste %s (%d bytes)",
            paste.privacy.value, self.store.slug(paste_id), paste.total_size(),
        )
        return paste

    def _seal(self, paste_id: int, request: CreationRequest, now: int) -> Paste:
        """Build the paste with its privacy mode applied to the content."""
        iterations = self.settings.kdf_iterations
        paste = Paste(
            id=paste_id,
            content=request.content,
            privacy=request.privacy,
            created=now,
            last_read=now,
            expiration=expiration_to_timestamp(
                request.expiration or self.settings.default_expiry,
                now,
                self.settings.eternal_pasta,
            ),
            burn_after_reads=request.burn_after,
            editable=self.settings.editable,
            extension=request.extension,
            paste_type=classify_content(request.content) if request.content else "text",
        )
        if request.privacy is Privacy.READONLY:
            paste.encrypted_key = encrypt(str(paste_id), request.plain_key, iterations)
        elif request.privacy.encrypt_server:
            paste.content = encrypt(request.content, self._encryption_key(request), iterations)
        return paste

    def _save_file(self, paste: Paste, request: CreationRequest, filename: str) -> FileRef:
        slug = self.store.slug(paste.id)
        data = request.file.data
        if paste.encrypt_server:
            data = encrypt_bytes(
                data, self._encryption_key(request), self.settings.kdf_iterations
            )
        locator = loc.encode_locator(
            slug, filename, encrypted=paste.encrypt_server, s3=self.settings.s3_enabled
        )
        # a failed save aborts the creation; nothing is committed
        self.storage.save(slug, loc.storage_path(locator, slug), data)
        return FileRef(locator=locator, size=len(request.file.data))

    def _lookup(self, paste_id: int) -> Paste:
        self.store.sweep()
        paste = self.store.find_by_id(paste_id)
        if paste is None:
            raise PasteNotFoundError(paste_id)
        return paste

    def _read_file(self, paste: Paste) -> bytes:
        slug = self.store.slug(paste.id)
        return self.storage.get(slug, loc.storage_path(paste.file.locator, slug))

    def _unlock(self, paste: Paste, key: Optional[str]) -> str:
        """Decrypt the content of a server-encrypted paste or raise UnauthorizedError."""
        if not key:
            raise UnauthorizedError()
        iterations = self.settings.kdf_iterations
        try:
            if paste.content:
                return decrypt(paste.content, key, iterations)
            if paste.file is not None:
                # empty content decrypts under any key, so prove the key on the file
                decrypt_bytes(self._read_file(paste), key, iterations)
                return ""
        except DecryptError:
            raise UnauthorizedError() from None
        raise UnauthorizedError()

    def view(self, paste_id: int, key: Optional[str] = None) -> Paste:
        """Return the paste with cleartext content and count the read."""
        paste = self._lookup(paste_id)
        content = paste.content
        if paste.encrypt_server:
            content = self._unlock(paste, key)
        touched = self.store.touch(paste_id)
        if touched is None:
            raise PasteNotFoundError(paste_id)
        return touched.copy(content=content)

    def fetch_file(self, paste_id: int, key: Optional[str] = None) -> Tuple[str, bytes]:
        paste = self._lookup(paste_id)
        if paste.file is None:
            raise PasteNotFoundError(paste_id)
        if paste.encrypt_server and not key:
            raise UnauthorizedError()
        data = self._read_file(paste)
        if paste.encrypt_server:
            try:
                data = decrypt_bytes(data, key, self.settings.kdf_iterations)
            except DecryptError:
                log.warning("Rejected key for file of paste %s", self.store.slug(paste_id))
                raise UnauthorizedError() from None
        return paste.file.display_name, data

    def _authorize_delete(self, paste: Paste, password: str) -> None:
        if not password:
            raise UnauthorizedError()
        admin = self.settings.admin_password
        if admin and hmac.compare_digest(password.encode("utf-8"), admin.encode("utf-8")):
            return
        if paste.readonly:
            if paste.encrypted_key:
                try:
                    proof = decrypt(paste.encrypted_key, password, self.settings.kdf_iterations)
                except DecryptError:
                    proof = None
                if proof == str(paste.id):
                    return
        elif paste.encrypt_server:
            try:
                self._unlock(paste, password)
                return
            except StorageNotFoundError:
                log.warning("Attachment of %s missing during delete", self.store.slug(paste.id))
        raise UnauthorizedError()

    def delete(self, paste_id: int, password: str = "") -> Paste:
        """Two-phase delete: authorise and drop bytes unlocked, then remove the row.

        A concurrent delete of the same id between the phases is tolerated;
        the second removal is a no-op.
        """
        paste = self._lookup(paste_id)
        if paste.protected:
            self._authorize_delete(paste, password)
        if paste.file is not None:
            try:
                self.storage.delete(
                    self.store.slug(paste_id),
                    loc.storage_path(paste.file.locator, self.store.slug(paste_id)),
                )
            except StorageNotFoundError:
                log.debug("Attachment of %s already gone", self.store.slug(paste_id))
            except StorageError as e:
                log.error("Failed to delete file of %s: %s", self.store.slug(paste_id), e)
        removed = self.store.remove_by_id(paste_id)
        log.info("Deleted paste %s", self.store.slug(paste_id))
        return removed or paste

    def list_public(self) -> List[Paste]:
        self.store.sweep()
        return self.store.list_public()
