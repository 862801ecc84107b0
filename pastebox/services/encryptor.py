# pastebox/services/encryptor.py
import base64
import binascii
import os

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from pastebox.errors import DecryptError

SALT_LENGTH = 16
KDF_ITERATIONS = 1_200_000


class Encryptor:
    """One Fernet key derived from a passphrase and a salt.

    Ciphertexts produced by :meth:`encrypt` carry their salt as a 16-byte
    prefix so the same passphrase can rebuild the key later.
    """

    def __init__(self, passphrase: str, salt: bytes | None = None, iterations: int = KDF_ITERATIONS):
        self.passphrase = bytes(passphrase, "utf-8")
        self.salt = salt if salt is not None else os.urandom(SALT_LENGTH)
        self.iterations = iterations
        self.key = self.generate_key()
        self.fernet = Fernet(self.key)

    def generate_key(self):
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=self.salt,
            iterations=self.iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(self.passphrase))

    def encrypt(self, data: bytes) -> bytes:
        return self.salt + self.fernet.encrypt(data)

    def decrypt(self, data: bytes) -> bytes:
        if data[:SALT_LENGTH] != self.salt:
            raise DecryptError()
        try:
            return self.fernet.decrypt(data[SALT_LENGTH:])
        except InvalidToken:
            raise DecryptError() from None

    def get_salt(self):
        return self.salt

    @classmethod
    def for_ciphertext(cls, passphrase: str, data: bytes, iterations: int = KDF_ITERATIONS) -> "Encryptor":
        if len(data) <= SALT_LENGTH:
            raise DecryptError()
        return cls(passphrase, salt=data[:SALT_LENGTH], iterations=iterations)


def encrypt_bytes(data: bytes, key: str, iterations: int = KDF_ITERATIONS) -> bytes:
    # Zero-length input stays zero-length so no fixed-size ciphertext leaks.
    if not data:
        return b""
    return Encryptor(key, iterations=iterations).encrypt(data)


def decrypt_bytes(data: bytes, key: str, iterations: int = KDF_ITERATIONS) -> bytes:
    if not data:
        return b""
    return Encryptor.for_ciphertext(key, data, iterations=iterations).decrypt(data)


def encrypt(plaintext: str, key: str, iterations: int = KDF_ITERATIONS) -> str:
    if plaintext == "":
        return ""
    raw = encrypt_bytes(plaintext.encode("utf-8"), key, iterations=iterations)
    return base64.b64encode(raw).decode("ascii")


def decrypt(ciphertext_b64: str, key: str, iterations: int = KDF_ITERATIONS) -> str:
    if ciphertext_b64 == "":
        return ""
    try:
        raw = base64.b64decode(ciphertext_b64.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        raise DecryptError() from None
    try:
        return decrypt_bytes(raw, key, iterations=iterations).decode("utf-8")
    except UnicodeDecodeError:
        raise DecryptError() from None
