from __future__ import annotations

import json
from typing import Iterable
from urllib.parse import quote_plus

import requests

from homehub_auth import Session, generate_cnonce
from homehub_client_exceptions import *
from homehub_models import *

HOMEHUB_DEFAULT_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
    "Accept": "application/json, text/javascript, */*; q=0.01",
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "en-GB,en-US;q=0.8,en;q=0.6",
}

SUCCESS_DESCRIPTION = "Ok"
REQUEST_FIELD = "req"
JSON_CONTENT_TYPE = "application/json"


def _compact_json(data) -> str:
    return json.dumps(data, separators=(",", ":"))

def build_envelope(session: Session, actions: Iterable[Action]) -> RequestEnvelope:
    """Sign a batch against the session as it is now; the caller bumps the counter first."""
    cnonce = generate_cnonce()
    return RequestEnvelope(
        id=session.request_count,
        session_id=session.session_id,
        actions=list(actions),
        cnonce=cnonce,
        auth_key=session.auth_key(cnonce),
    )

def encode_form(envelope: RequestEnvelope) -> dict[str, str]:
    return {REQUEST_FIELD: _compact_json(envelope.to_json())}

def session_cookie(session: Session) -> str:
    return quote_plus(_compact_json(session.cookie_payload()))

def request_cookies(session: Session) -> dict[str, str]:
    return {
        "lang": "en",
        "session": session_cookie(session),
    }

def decode_response(response: requests.Response) -> HubResponse:
    if response.status_code >= 400:
        raise TransportException(
            f"Error processing request. Hub returned HTTP response code: {response.status_code}")

    content_type = response.headers.get("Content-Type", "")
    if not content_type.startswith(JSON_CONTENT_TYPE):
        return HubResponse(body=response.text)

    try:
        data = response.json()
    except ValueError as e:
        raise ProtocolException(f"Malformed JSON reply: {e}") from e

    try:
        envelope = ResponseEnvelope.from_json(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ProtocolException(f"Unexpected reply structure: {e!r}") from e

    if envelope.error.description != SUCCESS_DESCRIPTION:
        raise ProtocolException(envelope.error.description)
    return HubResponse(envelope=envelope)
