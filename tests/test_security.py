import json

import pytest

from trackdrop.credentials import load_credentials, save_credentials_encrypted
from trackdrop.security import (
    SecurityManager,
    compute_signature,
    sign_request,
    signing_payload,
    verify_signature,
)

TOKEN = {"token": "ya29.x", "refresh_token": "1//r", "client_id": "id", "client_secret": "s"}


class TestSecurityManager:
    @pytest.mark.unit
    def test_encrypt_decrypt(self):
        manager = SecurityManager("app-secret")
        encrypted = manager.encrypt("hello")
        assert encrypted != "hello"
        assert manager.decrypt(encrypted) == "hello"

    @pytest.mark.unit
    def test_same_secret_derives_same_key(self):
        encrypted = SecurityManager("app-secret").encrypt("hello")
        assert SecurityManager("app-secret").decrypt(encrypted) == "hello"


class TestSigning:
    @pytest.mark.unit
    def test_payload_uppercases_method(self):
        assert signing_payload("1700000000", "post", "/api/sound") == "1700000000.POST./api/sound"

    @pytest.mark.unit
    def test_sign_request_headers(self):
        headers = sign_request("secret", "POST", "/api/sound", timestamp=1700000000)

        assert headers["X-Timestamp"] == "1700000000"
        assert headers["X-Signature"].startswith("sha256=")
        assert headers["X-Signature"] == compute_signature("secret", "1700000000", "POST", "/api/sound")

    @pytest.mark.unit
    def test_verify_rejects_tampering(self):
        headers = sign_request("secret", "POST", "/api/sound", timestamp=1700000000)
        sig, ts = headers["X-Signature"], headers["X-Timestamp"]

        assert verify_signature("secret", sig, ts, "POST", "/api/sound")
        assert not verify_signature("secret", sig, "1700000001", "POST", "/api/sound")
        assert not verify_signature("secret", sig, ts, "POST", "/api/other")
        assert not verify_signature("other", sig, ts, "POST", "/api/sound")
        assert not verify_signature("secret", None, ts, "POST", "/api/sound")


class TestCredentials:
    @pytest.mark.unit
    def test_plain_json(self, tmp_path):
        path = tmp_path / "token.json"
        path.write_text(json.dumps(TOKEN))

        assert load_credentials(str(path)) == TOKEN

    @pytest.mark.unit
    def test_encrypted_file(self, tmp_path):
        path = tmp_path / "nested" / "token.enc"

        assert save_credentials_encrypted(TOKEN, str(path), "app-secret")
        assert path.read_text().startswith("TDE:")
        assert load_credentials(str(path), "app-secret") == TOKEN

    @pytest.mark.unit
    def test_encrypted_needs_right_key(self, tmp_path):
        path = tmp_path / "token.enc"
        save_credentials_encrypted(TOKEN, str(path), "app-secret")

        assert load_credentials(str(path)) is None
        assert load_credentials(str(path), "wrong-secret") is None

    @pytest.mark.unit
    def test_missing_file(self, tmp_path):
        assert load_credentials(str(tmp_path / "absent.json")) is None
