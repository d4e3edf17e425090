"""Security utilities for TrackDrop"""

import base64
import hashlib
import hmac
import time
from typing import Dict, Optional
from cryptography.fernet import Fernet

SIGNATURE_PREFIX = "sha256="


class SecurityManager:
    """Encrypts credentials at rest"""

    def __init__(self, secret_key: str):
        self.secret_key = secret_key
        self._fernet = Fernet(self._derive_key(secret_key))

    def _derive_key(self, secret: str) -> bytes:
        """Derive Fernet key from secret"""
        key = hashlib.sha256(secret.encode()).digest()
        return base64.urlsafe_b64encode(key)

    def encrypt(self, data: str) -> str:
        """Encrypt sensitive data"""
        return self._fernet.encrypt(data.encode()).decode()

    def decrypt(self, encrypted: str) -> str:
        """Decrypt sensitive data"""
        return self._fernet.decrypt(encrypted.encode()).decode()


def signing_payload(timestamp: str, method: str, path: str) -> str:
    return f"{timestamp}.{method.upper()}.{path}"


def compute_signature(secret: str, timestamp: str, method: str, path: str) -> str:
    """HMAC-SHA256 over timestamp, method and path, GitHub-style prefixed"""
    digest = hmac.new(
        secret.encode(),
        signing_payload(timestamp, method, path).encode(),
        hashlib.sha256,
    ).hexdigest()
    return SIGNATURE_PREFIX + digest


def sign_request(
    secret: str, method: str, path: str, timestamp: Optional[int] = None
) -> Dict[str, str]:
    """Headers authenticating a request to the site"""
    ts = str(int(timestamp if timestamp is not None else time.time()))
    return {
        "X-Timestamp": ts,
        "X-Signature": compute_signature(secret, ts, method, path),
    }


def verify_signature(
    secret: str, signature: Optional[str], timestamp: str, method: str, path: str
) -> bool:
    """Verify a signature produced by sign_request"""
    if not signature:
        return False
    expected = compute_signature(secret, timestamp, method, path)
    return hmac.compare_digest(signature, expected)
