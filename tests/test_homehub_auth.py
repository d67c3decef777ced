"""Tests for the Home Hub digest functions and session state."""

import threading

import pytest

from homehub_auth import (
    CNONCE_UPPER_BOUND,
    Session,
    cookie_ha1,
    generate_cnonce,
    password_digest,
    request_auth_key,
    request_ha1,
)

PWD_DIGEST = "5ebe2294ecd0e0f08eab7690d2a6ee69"  # md5("secret")


def test_password_digest_is_hex_md5():
    assert password_digest("secret") == PWD_DIGEST


def test_request_ha1_without_nonce_uses_double_colon():
    assert request_ha1("admin", "", PWD_DIGEST) == "90dc0217145e1bf683558abd9c69f5a1"


def test_request_ha1_with_nonce():
    assert request_ha1("admin", "12345", PWD_DIGEST) == "926e6317097dd8598510d163b8b58596"


def test_request_auth_key_before_login():
    assert request_auth_key("admin", PWD_DIGEST, "", 0, 42) == "7e500b8dd39887f78c3f7a4cd9452e0f"


def test_request_auth_key_after_login():
    assert request_auth_key("admin", PWD_DIGEST, "12345", 3, 42) == "87aab79dacbb8c372987240b60c11473"


def test_request_auth_key_is_deterministic():
    first = request_auth_key("admin", PWD_DIGEST, "abc", 7, 99)
    assert first == request_auth_key("admin", PWD_DIGEST, "abc", 7, 99)
    assert first != request_auth_key("admin", PWD_DIGEST, "abc", 8, 99)
    assert first != request_auth_key("admin", PWD_DIGEST, "abc", 7, 100)


def test_cookie_ha1_splices_password_digest_at_offset_ten():
    result = cookie_ha1("admin", PWD_DIGEST, "12345")
    assert result == "926e631709" + PWD_DIGEST + "7dd8598510d163b8b58596"
    assert len(result) == 64


def test_cookie_ha1_without_nonce():
    assert cookie_ha1("admin", PWD_DIGEST, "") == \
        "90dc0217145ebe2294ecd0e0f08eab7690d2a6ee695e1bf683558abd9c69f5a1"


def test_generate_cnonce_is_31_bit():
    for _ in range(100):
        cnonce = generate_cnonce()
        assert 0 <= cnonce < CNONCE_UPPER_BOUND


class TestSession:

    @pytest.fixture
    def session(self):
        return Session.create("http://192.168.1.254", "admin", "secret")

    def test_new_session_is_unauthenticated(self, session):
        assert session.password_digest == PWD_DIGEST
        assert session.session_id == "0"
        assert session.nonce == ""
        assert session.request_count == 0
        assert not session.authenticated

    def test_api_url(self, session):
        assert session.api_url == "http://192.168.1.254/cgi/json-req"

    def test_authenticate_stores_session_id_as_string(self, session):
        session.authenticate(1234, "abcdef")
        assert session.session_id == "1234"
        assert session.nonce == "abcdef"
        assert session.authenticated

    def test_next_request_is_strictly_increasing(self, session):
        assert [session.next_request() for _ in range(3)] == [1, 2, 3]

    def test_next_request_is_thread_safe(self, session):
        def bump():
            for _ in range(1000):
                session.next_request()

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert session.request_count == 4000

    def test_auth_key_uses_current_state(self, session):
        session.authenticate(1, "12345")
        session.request_count = 3
        assert session.auth_key(42) == "87aab79dacbb8c372987240b60c11473"

    def test_cookie_payload(self, session):
        session.authenticate(77, "12345")
        session.request_count = 5
        assert session.cookie_payload() == {
            "req_id": 5,
            "sess_id": 77,
            "basic": False,
            "user": "admin",
            "dataModel": {
                "name": "Internal",
                "nss": [{"name": "gtw", "uri": "http://sagemcom.com/gateway-data"}],
            },
            "ha1": "926e631709" + PWD_DIGEST + "7dd8598510d163b8b58596",
            "nonce": "12345",
        }
