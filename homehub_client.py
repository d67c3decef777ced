from __future__ import annotations

import logging
from datetime import date

import requests

from homehub_auth import Session
from homehub_codec import *
from homehub_models import *
from homehub_utils import *

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

BANDWIDTH_EPOCH = "20000101"

SUMMARY_OPTIONS = CapabilityFlags(interface=True)


def _decode_devices(value) -> list[Device]:
    if not isinstance(value, list):
        raise TypeError(f"expected a list of hosts, got {type(value).__name__}")
    return [Device.from_json(v) for v in value if isinstance(v, dict)]

def _decode_firmware(value) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a firmware string, got {value!r}")
    return value


# xpath -> (SummaryStatistics field, decoder)
_SUMMARY_DECODERS = {
    XPath.CONNECTED_DEVICES: ("devices", _decode_devices),
    XPath.DOWNLOADED_BYTES: ("downloaded_bytes", parse_number),
    XPath.DOWNLOAD_RATE: ("download_rate", parse_number),
    XPath.FIRMWARE_VERSION: ("firmware_version", _decode_firmware),
    XPath.UPLOADED_BYTES: ("uploaded_bytes", parse_number),
    XPath.UPLOAD_RATE: ("upload_rate", parse_number),
    XPath.UP_TIME: ("uptime", parse_number),
}


@dataclass
class RouterClient:
    session: Session
    http: requests.Session
    timeout: float = DEFAULT_TIMEOUT

    def __send(self, method: str, url: str, **kwargs) -> HubResponse:
        try:
            response = self.http.request(method, url,
                                         headers=HOMEHUB_DEFAULT_HEADERS,
                                         cookies=request_cookies(self.session),
                                         timeout=self.timeout,
                                         **kwargs)
        except requests.RequestException as e:
            raise TransportException(f"Request to {url} failed: {e}") from e
        return decode_response(response)

    def __post_actions(self, *actions: Action) -> ResponseEnvelope:
        envelope = build_envelope(self.session, actions)
        logger.debug(f"POST {self.session.api_url} id={envelope.id} "
                     f"actions={[a.method.value for a in actions]}")
        response = self.__send("POST", self.session.api_url, data=encode_form(envelope))
        return response.require_envelope()

    def login(self) -> None:
        action = Action(
            id=0,
            method=Method.LOG_IN,
            parameters={
                "user": self.session.username,
                "persistent": "true",
                "session-options": SessionOptions().to_json(),
            },
        )
        with self.session.lock:
            try:
                envelope = self.__post_actions(action)
            except ProtocolException as e:
                raise AuthenticationException(e.description) from e
            params = envelope.first_callback().parameters
            if "id" not in params or "nonce" not in params:
                raise AuthenticationException("Login reply carries no session id or nonce")
            try:
                session_id = int(params["id"])
            except (ValueError, TypeError) as e:
                raise AuthenticationException(f"Login reply carries an invalid session id: {params['id']!r}") from e
            self.session.authenticate(session_id, str(params["nonce"]))
        logger.info(f"Logged in to {self.session.base_url} as {self.session.username}")

    def get_summary_statistics(self) -> SummaryStatistics:
        actions = [
            Action(id=i, method=Method.GET_VALUE, xpath=xpath, capability_flags=SUMMARY_OPTIONS)
            for i, xpath in enumerate(SUMMARY_XPATHS)
        ]
        with self.session.lock:
            self.session.next_request()
            envelope = self.__post_actions(*actions)

        stats = SummaryStatistics()
        for action in envelope.actions:
            for callback in action.callbacks[:1]:
                try:
                    xpath = XPath(callback.xpath)
                except ValueError:
                    logger.debug(f"Ignoring callback for unrequested xpath {callback.xpath}")
                    continue
                if xpath not in _SUMMARY_DECODERS:
                    continue
                attr, decode = _SUMMARY_DECODERS[xpath]
                try:
                    setattr(stats, attr, decode(callback.value))
                except (ValueError, TypeError) as e:
                    logger.debug(f"Skipping {xpath.name}: {e}")
        return stats

    def __trigger_bandwidth_export(self, today: date) -> ExportTriggered:
        """Ask the hub to write its bandwidth monitoring CSV; the reply names the file."""
        action = Action(
            id=0,
            method=Method.UPLOAD_BM_STATISTICS_FILE,
            xpath=XPath.BANDWIDTH_MONITORING,
            parameters={
                "startDate": BANDWIDTH_EPOCH,
                "endDate": yyyymmdd(today),
            },
        )
        envelope = self.__post_actions(action)
        filename = envelope.first_callback().parameters.get("data")
        if not filename:
            raise ProtocolException("Bandwidth export reply does not name a file")
        return ExportTriggered(filename=str(filename))

    def __fetch_bandwidth_export(self, export: ExportTriggered) -> ExportFetched:
        url = f"{self.session.base_url}/{export.filename.lstrip('/')}"
        logger.debug(f"GET {url}")
        response = self.__send("GET", url)
        return ExportFetched(filename=export.filename, body=response.body)

    def get_bandwidth_statistics(self, today: Optional[date] = None) -> ExportFetched:
        # one counter value covers the export request and the download
        with self.session.lock:
            self.session.next_request()
            export = self.__trigger_bandwidth_export(today or date.today())
            return self.__fetch_bandwidth_export(export)


class RouterClientFactory:

    def __init__(self, host: str, timeout: float = DEFAULT_TIMEOUT):
        self.host = normalize_host(host)
        self.timeout = timeout

    def auth(self, username: str, password: str) -> RouterClient:
        session = Session.create(self.host, username, password)
        client = RouterClient(session, requests.Session(), self.timeout)
        client.login()
        return client
