"""
Home Hub authentication digests and session state.

The digests reproduce the hub firmware's web UI byte for byte; the router
rejects the session on any deviation.
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field

from homehub_models import Nss
from homehub_utils import hexmd5

API_PATH = "cgi/json-req"

# Offset at which the password digest is spliced into the cookie digest.
COOKIE_HA1_SPLICE_OFFSET = 10

CNONCE_UPPER_BOUND = 2 ** 31 - 1


def password_digest(password: str) -> str:
    return hexmd5(password)

def request_ha1(username: str, nonce: str, pwd_digest: str) -> str:
    if nonce:
        return hexmd5(f"{username}:{nonce}:{pwd_digest}")
    return hexmd5(f"{username}::{pwd_digest}")

def request_auth_key(username: str, pwd_digest: str, nonce: str, request_count: int, cnonce: int,
                     api_path: str = API_PATH) -> str:
    """auth-key field of a request envelope."""
    ha1 = request_ha1(username, nonce, pwd_digest)
    return hexmd5(f"{ha1}:{request_count}:{cnonce}:JSON:/{api_path}")

def cookie_ha1(username: str, pwd_digest: str, nonce: str) -> str:
    """ha1 field of the session cookie: the password digest spliced into the identity digest."""
    auth_key = hexmd5(f"{username}:{nonce}:{pwd_digest}")
    return auth_key[:COOKIE_HA1_SPLICE_OFFSET] + pwd_digest + auth_key[COOKIE_HA1_SPLICE_OFFSET:]

def generate_cnonce() -> int:
    return random.randrange(CNONCE_UPPER_BOUND)


@dataclass
class Session:
    """
    Per-router session state.

    Unauthenticated until :meth:`authenticate` copies the session id and nonce
    from a successful login reply. ``lock`` serialises every read and write
    of the counter/nonce pair, together with the request that uses them.
    """
    base_url: str
    username: str
    password_digest: str
    api_path: str = API_PATH
    session_id: str = "0"
    nonce: str = ""
    request_count: int = 0
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @classmethod
    def create(cls, base_url: str, username: str, password: str) -> Session:
        return cls(base_url=base_url, username=username, password_digest=password_digest(password))

    @property
    def api_url(self) -> str:
        return f"{self.base_url}/{self.api_path}"

    @property
    def authenticated(self) -> bool:
        return bool(self.nonce)

    def next_request(self) -> int:
        with self.lock:
            self.request_count += 1
            return self.request_count

    def authenticate(self, session_id, nonce: str):
        with self.lock:
            self.session_id = str(session_id)
            self.nonce = nonce

    def auth_key(self, cnonce: int) -> str:
        return request_auth_key(self.username, self.password_digest, self.nonce,
                                self.request_count, cnonce, self.api_path)

    def cookie_payload(self) -> dict:
        """Identity payload carried in the ``session`` cookie of every request."""
        try:
            sess_id = int(self.session_id)
        except ValueError:
            sess_id = 0
        return {
            "req_id": self.request_count,
            "sess_id": sess_id,
            "basic": False,
            "user": self.username,
            "dataModel": {
                "name": "Internal",
                "nss": [Nss().to_json()],
            },
            "ha1": cookie_ha1(self.username, self.password_digest, self.nonce),
            "nonce": self.nonce,
        }
