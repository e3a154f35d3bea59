"""
Synology DSM Session Manager

Owns the login state of one Synology NAS account: authenticates against
``SYNO.API.Auth``, discovers the APIs of the requested application scope,
signs outgoing requests with the session id / SynoToken and tracks expiry.

State machine::

    LOGGED_OUT -> LOGGING_IN -> ACTIVE -> EXPIRED -> LOGGING_IN -> ACTIVE
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import requests

from omnistore.infrastructure.exceptions import AuthError, TransferError

logger = logging.getLogger(__name__)

AUTH_API = "SYNO.API.Auth"
INFO_API = "SYNO.API.Info"
DEFAULT_API_PATH = "entry.cgi"

# DSM auth error codes
LOGIN_ERROR_REASONS = {
    400: "invalid_credentials",
    401: "invalid_credentials",  # account disabled
    402: "invalid_credentials",  # permission denied
    403: "otp_required",
    404: "otp_required",  # otp code rejected
    406: "otp_required",  # otp enforcement without enrollment
    407: "rate_limited",  # ip blocked after too many attempts
}


class SessionState(enum.Enum):
    LOGGED_OUT = "logged_out"
    LOGGING_IN = "logging_in"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass
class SynologySession:
    sid: str
    syno_token: str = ""
    expired: bool = False
    api_info: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class SignedRequest:
    """Query parameters and headers of a request carrying the session credentials"""
    params: Dict[str, Any]
    headers: Dict[str, str]


class SynologySessionManager:
    """
    Login state of one account for one application scope (``FileStation``).

    Not thread-safe: one manager belongs to one adapter.
    """

    def __init__(
        self,
        endpoint: str,
        account: str,
        password: str,
        http_session: Optional[requests.Session] = None,
        application: str = "FileStation",
        otp_code: Optional[str] = None,
        timeout: float = 60,
        verify: bool = True,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.account = account
        self.password = password
        self.http = http_session or requests.Session()
        self.application = application
        self.otp_code = otp_code
        self.timeout = timeout
        self.verify = verify

        self.state = SessionState.LOGGED_OUT
        self.session: Optional[SynologySession] = None

    def _get(self, cgi: str, params: Mapping[str, Any]) -> dict:
        url = f"{self.endpoint}/webapi/{cgi}"
        try:
            response = self.http.get(url, params=params, timeout=self.timeout, verify=self.verify)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            raise TransferError(f"Synology request to {cgi} failed: {e}", retryable=True) from e

    def login(self) -> SynologySession:
        """
        Authenticate and discover the APIs of the application scope.

        Raises:
            AuthError: DSM refused the credentials, ``code`` holds the DSM error code
            TransferError: the NAS could not be reached (retryable)
        """
        self.state = SessionState.LOGGING_IN
        params = {
            "api": AUTH_API,
            "version": 3,
            "method": "login",
            "account": self.account,
            "passwd": self.password,
            "session": self.application,
            "format": "cookie",
            "enable_syno_token": "yes",
        }
        if self.otp_code:
            params["otp_code"] = self.otp_code

        try:
            payload = self._get("auth.cgi", params)
        except TransferError:
            self.state = SessionState.LOGGED_OUT
            logger.error(f"❌ Synology 登录失败, 无法连接: {self.endpoint}")
            raise

        if not payload.get("success"):
            self.state = SessionState.LOGGED_OUT
            self.session = None
            code = (payload.get("error") or {}).get("code")
            reason = LOGIN_ERROR_REASONS.get(code, "backend_unavailable")
            logger.error(f"❌ Synology 登录失败: account={self.account}, code={code}, reason={reason}")
            raise AuthError(f"Synology login failed with code {code}", code=code, reason=reason)

        data = payload.get("data") or {}
        session = SynologySession(sid=data.get("sid", ""), syno_token=data.get("synotoken", ""))
        try:
            session.api_info = self._discover_apis()
        except TransferError:
            self.state = SessionState.LOGGED_OUT
            raise

        self.session = session
        self.state = SessionState.ACTIVE
        logger.info(f"✅ Synology 登录成功: {self.endpoint} (可用API {len(session.api_info)}个)")
        return session

    def _discover_apis(self) -> Dict[str, Dict[str, Any]]:
        payload = self._get("query.cgi", {"api": INFO_API, "version": 1, "method": "query", "query": "all"})
        apis = payload.get("data") or {}
        scope = self.application.lower()
        return {
            name: info for name, info in apis.items()
            if isinstance(info, dict) and scope in name.lower()
        }

    def ensure_active(self) -> SynologySession:
        """Return the current session, logging in only when there is none or it expired"""
        if self.state is SessionState.ACTIVE and self.session and not self.session.expired:
            return self.session
        if self.state is SessionState.EXPIRED:
            logger.info(f"Synology 会话已过期, 重新登录: {self.endpoint}")
        return self.login()

    def invalidate(self) -> None:
        """Mark the active session expired, the next ensure_active logs in again"""
        if self.session is not None:
            self.session.expired = True
        if self.state is SessionState.ACTIVE:
            self.state = SessionState.EXPIRED

    def sign(self, params: Optional[Mapping[str, Any]] = None,
             headers: Optional[Mapping[str, str]] = None) -> SignedRequest:
        session = self.ensure_active()
        signed_params = dict(params or {})
        signed_params["_sid"] = session.sid
        signed_params["SynoToken"] = session.syno_token
        signed_headers = dict(headers or {})
        signed_headers["Cookie"] = f"stay_login=1; id={session.sid}"
        signed_headers["X-SYNO-TOKEN"] = session.syno_token
        return SignedRequest(params=signed_params, headers=signed_headers)

    def logout(self) -> None:
        """Best-effort logout; the state is LOGGED_OUT afterwards regardless"""
        session = self.session
        self.session = None
        self.state = SessionState.LOGGED_OUT
        if session is None or session.expired:
            return
        try:
            self._get("auth.cgi", {
                "api": AUTH_API,
                "version": 3,
                "method": "logout",
                "session": self.application,
                "_sid": session.sid,
            })
            logger.info(f"✅ Synology 已登出: {self.endpoint}")
        except TransferError as e:
            logger.warning(f"Synology 登出失败: {e}")

    def api_path(self, name: str) -> str:
        info = self.session.api_info.get(name) if self.session else None
        return (info or {}).get("path", DEFAULT_API_PATH)

    def api_version(self, name: str, preferred: int) -> int:
        """Preferred version clamped to the range the NAS advertises"""
        info = self.session.api_info.get(name) if self.session else None
        if not info:
            return preferred
        low = int(info.get("minVersion", preferred))
        high = int(info.get("maxVersion", preferred))
        return max(low, min(preferred, high))
