"""Tests for request encoding and response decoding."""

import json
from unittest.mock import patch
from urllib.parse import unquote_plus

import pytest
import requests

from homehub_auth import Session
from homehub_client_exceptions import ProtocolException, TransportException
from homehub_codec import build_envelope, decode_response, encode_form, request_cookies, session_cookie
from homehub_models import Action, CapabilityFlags, Method, SessionOptions, XPath


def make_response(status=200, content_type="application/json", body=b""):
    response = requests.Response()
    response.status_code = status
    response.headers["Content-Type"] = content_type
    response._content = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    response.encoding = "utf-8"
    return response


def reply(description="Ok", actions=None):
    return {
        "reply": {
            "uid": 0,
            "id": 1,
            "error": {"code": 16777216, "description": description},
            "actions": actions or [],
        }
    }


@pytest.fixture
def session():
    session = Session.create("http://192.168.1.254", "admin", "secret")
    session.authenticate(1, "12345")
    session.request_count = 3
    return session


def test_build_envelope_signs_with_session_snapshot(session):
    action = Action(id=0, method=Method.GET_VALUE, xpath=XPath.UP_TIME)
    with patch("homehub_codec.generate_cnonce", return_value=42):
        envelope = build_envelope(session, [action])

    assert envelope.id == 3
    assert envelope.session_id == "1"
    assert envelope.cnonce == 42
    assert envelope.auth_key == "87aab79dacbb8c372987240b60c11473"
    assert envelope.priority is False


def test_encode_form_wraps_envelope_in_req_field(session):
    actions = [
        Action(id=0, method=Method.GET_VALUE, xpath=XPath.UP_TIME,
               capability_flags=CapabilityFlags(interface=True)),
    ]
    with patch("homehub_codec.generate_cnonce", return_value=42):
        form = encode_form(build_envelope(session, actions))

    assert list(form) == ["req"]
    assert json.loads(form["req"]) == {
        "request": {
            "id": 3,
            "session-id": "1",
            "priority": False,
            "actions": [{
                "id": 0,
                "method": "getValue",
                "xpath": "Device/DeviceInfo/UpTime",
                "options": {"capability-flags": {"interface": True}},
            }],
            "cnonce": 42,
            "auth-key": "87aab79dacbb8c372987240b60c11473",
        }
    }


def test_login_action_omits_unset_fields():
    action = Action(id=0, method=Method.LOG_IN,
                    parameters={"user": "admin", "persistent": "true",
                                "session-options": SessionOptions().to_json()})
    data = action.to_json()
    assert "xpath" not in data
    assert "options" not in data
    assert data["parameters"]["session-options"] == {
        "nss": [{"name": "gtw", "uri": "http://sagemcom.com/gateway-data"}],
        "language": "ident",
        "context-flags": {"get-content-name": True, "local-time": True},
        "capability-flags": {"name": True, "restriction": True},
        "capability-depth": 2,
        "time-format": "ISO_8601",
    }


def test_session_cookie_is_url_escaped_json(session):
    cookie = session_cookie(session)
    assert " " not in cookie and '"' not in cookie
    assert json.loads(unquote_plus(cookie)) == session.cookie_payload()


def test_request_cookies_include_locale(session):
    cookies = request_cookies(session)
    assert cookies["lang"] == "en"
    assert "session" in cookies


def test_decode_response_http_error_is_transport_failure():
    with pytest.raises(TransportException, match="503"):
        decode_response(make_response(status=503, body=reply()))


def test_decode_response_parses_json_envelope():
    body = reply(actions=[{
        "uid": 1, "id": 0, "error": {"code": 0, "description": "OK"},
        "callbacks": [{"uid": 1, "result": {"code": 0, "description": "XMO_REQUEST_NO_ERR"},
                       "xpath": "Device/DeviceInfo/UpTime", "parameters": {"value": 1234}}],
    }])
    decoded = decode_response(make_response(content_type="application/json; charset=utf-8", body=body))
    callback = decoded.require_envelope().first_callback()
    assert callback.xpath == "Device/DeviceInfo/UpTime"
    assert callback.value == 1234


def test_decode_response_reply_error_carries_vendor_description():
    with pytest.raises(ProtocolException) as excinfo:
        decode_response(make_response(body=reply("XMO_AUTHENTICATION_ERR")))
    assert excinfo.value.description == "XMO_AUTHENTICATION_ERR"


def test_decode_response_malformed_json_is_protocol_failure():
    with pytest.raises(ProtocolException):
        decode_response(make_response(body=b"{not json"))


def test_decode_response_missing_reply_is_protocol_failure():
    with pytest.raises(ProtocolException):
        decode_response(make_response(body={"something": "else"}))


def test_decode_response_non_json_is_opaque_body():
    decoded = decode_response(make_response(content_type="text/csv", body=b"a,b,c,1,2\n"))
    assert decoded.envelope is None
    assert decoded.body == "a,b,c,1,2\n"
    with pytest.raises(ProtocolException):
        decoded.require_envelope()
