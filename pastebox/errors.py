class PasteboxError(Exception):
    """Base class for every error raised by the paste lifecycle engine."""


class ConfigError(PasteboxError):
    """Startup-time misconfiguration, e.g. a partial S3 configuration."""


class DecryptError(PasteboxError):
    """Wrong key, corrupted ciphertext or malformed base64.

    All three share one message so callers cannot tell them apart.
    """

    def __init__(self):
        super().__init__("Failed to decrypt payload")


class CodecError(PasteboxError):
    """Malformed locator or unsafe filename."""


class StorageError(PasteboxError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class StorageNotFoundError(StorageError):
    """The bytes are gone; for GC this usually means they were already reclaimed."""


class StorageUnavailableError(StorageError):
    """The backend could not serve the request (permissions, I/O, network)."""


class RequestError(PasteboxError):
    """A creation request the engine refuses to honour."""


class FileTooLargeError(RequestError):
    pass


class PasteNotFoundError(PasteboxError):
    def __init__(self, paste_id: int):
        super().__init__(f"Paste {paste_id} not found")
        self.paste_id = paste_id


class UnauthorizedError(PasteboxError):
    def __init__(self):
        super().__init__("Incorrect or missing password")


class IdCollisionError(PasteboxError):
    pass
