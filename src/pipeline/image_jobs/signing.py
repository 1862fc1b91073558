import base64
import hashlib
import hmac
import secrets
import string
import time

NONCE_ALPHABET = string.ascii_lowercase + string.digits
NONCE_LENGTH = 8


def sign(path: str, timestamp: str, nonce: str, secret: str) -> str:
    """base64url(HMAC-SHA1(secret, "path&timestamp&nonce")) without padding."""
    content = f"{path}&{timestamp}&{nonce}"
    digest = hmac.new(secret.encode("utf-8"), content.encode("utf-8"), hashlib.sha1).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_nonce() -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(NONCE_LENGTH))


def epoch_millis() -> str:
    return str(int(time.time() * 1000))
