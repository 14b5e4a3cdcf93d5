"""
EZVIZ account directory client.

Logs in to the EZVIZ cloud and resolves the account's cameras to their local
network addresses.
"""

import hashlib

import requests

from logging_config import get_logger
from pipeline.interfaces.directory import (
    Device,
    DirectoryError,
    DirectoryInterface,
    InvalidCredentialsError,
)

logger = get_logger(__name__)

DEFAULT_API_DOMAIN = "apiieu"
FEATURE_CODE = "92c579faa0902cbfcfcc4fc004ef67e7"
REGION_REDIRECT_CODE = 1100
SUCCESS_CODE = 200
DEVICE_FILTER = "CLOUD,TIME_PLAN,CONNECTION,SWITCH,STATUS,WIFI,STATUS_EXT,NODISTURB,P2P,TTS,KMS,HIDDNS"
REQUEST_TIMEOUT = 15


class EzvizDirectory(DirectoryInterface):
    """Directory service backed by the EZVIZ cloud API."""

    def __init__(self, account: str, password: str, session: requests.Session | None = None):
        self._account = account
        self._password_hash = hashlib.md5(password.encode("utf-8")).hexdigest()
        self._http = session or requests.Session()
        self.api_domain = DEFAULT_API_DOMAIN
        self.session_id: str | None = None

    def _base_url(self, domain: str | None = None) -> str:
        return f"https://{domain or self.api_domain}.ezvizlife.com"

    def _login(self, domain: str) -> requests.Response:
        return self._http.post(
            f"{self._base_url(domain)}/v3/users/login",
            data={
                "account": self._account,
                "password": self._password_hash,
                "featureCode": FEATURE_CODE,
            },
            headers={"clientType": "1", "customNo": "1000001"},
            timeout=REQUEST_TIMEOUT,
        )

    def _login_json(self, domain: str) -> dict:
        response = self._login(domain)
        if response.status_code == 400:
            raise InvalidCredentialsError("incorrect username and/or password")
        response.raise_for_status()
        return response.json()

    def authenticate(self) -> str:
        """Logs in, following a single region redirect if the account lives elsewhere."""
        payload = self._login_json(self.api_domain)
        code = payload.get("meta", {}).get("code")

        if code == REGION_REDIRECT_CODE:
            api_domain = payload.get("loginArea", {}).get("apiDomain") or ""
            region = api_domain.split(".")[0]
            if not region:
                raise DirectoryError("invalid API domain")
            logger.info(f"EZVIZ account lives in region '{region}', logging in again")
            self.api_domain = region
            payload = self._login_json(self.api_domain)
            code = payload.get("meta", {}).get("code")

        if code not in (SUCCESS_CODE, REGION_REDIRECT_CODE):
            raise DirectoryError(f"unknown response code {code}")

        session = payload.get("loginSession") or {}
        session_id = session.get("sessionId")
        if not session_id:
            raise DirectoryError("the server did not provide a session ID")
        self.session_id = session_id
        logger.info("Authenticated with EZVIZ")
        return session_id

    def list_devices(self) -> list[Device]:
        if self.session_id is None:
            self.authenticate()
        response = self._http.get(
            f"{self._base_url()}/v3/userdevices/v1/devices/pagelist",
            headers={"sessionId": self.session_id},
            params={"filter": DEVICE_FILTER},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        payload = response.json()

        connections = payload.get("connectionInfos") or {}
        devices = []
        for camera in payload.get("cameraInfos") or []:
            name = camera.get("cameraName", "")
            connection = connections.get(camera.get("deviceSerial"))
            if not connection or not connection.get("localIp"):
                raise DirectoryError(f"the server did not provide an IP address for `{name}`")
            devices.append(Device(name=name, address=connection["localIp"]))
        logger.info(f"Found {len(devices)} camera(s) on the account")
        return devices
