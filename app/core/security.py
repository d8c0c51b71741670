import base64
import hashlib
import hmac
import secrets
from dataclasses import dataclass

from app.core.config import settings

PASSWORD_ITERATIONS = 260_000


@dataclass(frozen=True)
class ApiKeyParts:
    prefix: str
    plain: str
    hashed: str


def generate_api_key(prefix_len: int = 8) -> ApiKeyParts:
    # Example: ll_<prefix>_<random>
    raw = secrets.token_urlsafe(32)
    prefix = raw[:prefix_len]
    plain = f"ll_{prefix}_{raw}"
    hashed = hash_api_key(plain)
    return ApiKeyParts(prefix=prefix, plain=plain, hashed=hashed)


def hash_api_key(plain: str) -> str:
    # Pepper protects against rainbow tables if DB leaks.
    salted = (plain + settings.api_key_pepper.get_secret_value()).encode("utf-8")
    digest = hashlib.sha256(salted).digest()
    return base64.b64encode(digest).decode("utf-8")


def hash_password(password: str, *, salt: bytes | None = None) -> str:
    salt = salt or secrets.token_bytes(16)
    peppered = (password + settings.api_key_pepper.get_secret_value()).encode("utf-8")
    digest = hashlib.pbkdf2_hmac("sha256", peppered, salt, PASSWORD_ITERATIONS)
    return "pbkdf2_sha256${}${}${}".format(
        PASSWORD_ITERATIONS,
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(digest).decode("ascii"),
    )


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt_b64, digest_b64 = stored.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False

    peppered = (password + settings.api_key_pepper.get_secret_value()).encode("utf-8")
    digest = hashlib.pbkdf2_hmac("sha256", peppered, base64.b64decode(salt_b64), int(iterations))
    return hmac.compare_digest(base64.b64encode(digest).decode("ascii"), digest_b64)
