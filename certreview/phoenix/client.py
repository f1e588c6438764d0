"""Phoenix calibration API client.

Single point of integration with the remote calibration system. The client
owns a process-wide bearer token: it is cached after login and refreshed
when it expires. Concurrent callers that find the token expired share one
in-flight login task instead of each logging in.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from certreview.config import Settings, settings
from certreview.errors import AuthenticationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://portal.phoenixcalibrationdr.com"

# Unfiltered listing
LIST_FILTER = {"EquipmentType": "", "ProcedureCode": "", "IsAccredited": ""}

TOKEN_KEYS = ("token", "accessToken", "access_token", "Token", "AccessToken")
EXPIRY_KEYS = ("expires_in", "expiresIn", "ExpiresIn")


class PhoenixRequestError(Exception):
    """A Phoenix call failed. ``status_code`` is None for transport errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


def _response_body(response: httpx.Response) -> Any:
    """JSON body when parseable, raw text otherwise."""
    try:
        return response.json()
    except ValueError:
        return response.text


def extract_token(data: Any) -> str:
    """Pull the bearer token out of any of the login response shapes Phoenix uses."""
    token: Any
    if isinstance(data, str):
        token = data
    elif isinstance(data, dict):
        access = data.get("AccessToken")
        if isinstance(access, dict) and access.get("Token"):
            token = access["Token"]
        else:
            token = next((data[key] for key in TOKEN_KEYS if data.get(key)), None)
    else:
        raise AuthenticationError("Invalid token response structure")
    if not token or not isinstance(token, str):
        raise AuthenticationError("Invalid token response")
    return token


def declared_lifetime(data: Any) -> float | None:
    """Token lifetime in seconds if the login response declares one."""
    if not isinstance(data, dict):
        return None
    for source in (data, data.get("AccessToken")):
        if not isinstance(source, dict):
            continue
        for key in EXPIRY_KEYS:
            value = source.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
                return float(value)
    return None


def failure_message(prefix: str, status_code: int, payload: Any) -> str:
    """Build ``<prefix> (HTTP nnn): <detail>`` from an error response."""
    message = f"{prefix} (HTTP {status_code})"
    detail = None
    if isinstance(payload, str):
        detail = payload.strip() or None
    elif isinstance(payload, dict):
        detail = payload.get("message") or payload.get("Message") or payload.get("error")
    if detail:
        message += f": {detail}"
    return message


class PhoenixClient:
    """Async client for the Phoenix calibration API."""

    def __init__(
        self,
        config: Settings = settings,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._transport = transport
        self._clock = clock
        self._token: str | None = None
        self._token_expiry: float | None = None
        self._pending_auth: asyncio.Future | None = None

    def _http(self, timeout: float | None) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    @property
    def login_url(self) -> str:
        return self.config.phoenix_login_api_url or f"{DEFAULT_BASE_URL}/api/auth/login"

    def host_origin(self) -> str:
        """Origin of the list URL, falling back to the login URL."""
        for url in (self.config.list_all_certificates_api_url, self.login_url):
            parsed = urlparse(url or "")
            if parsed.scheme and parsed.netloc:
                return f"{parsed.scheme}://{parsed.netloc}"
        return DEFAULT_BASE_URL

    def _token_is_valid(self) -> bool:
        return (
            self._token is not None
            and self._token_expiry is not None
            and self._clock() < self._token_expiry
        )

    def invalidate_token(self) -> None:
        self._token = None
        self._token_expiry = None

    async def authenticate(self) -> str:
        """Log in and cache the token."""
        credentials = {
            "UserName": self.config.phoenix_username,
            "Password": self.config.phoenix_password,
        }
        try:
            async with self._http(self.config.phoenix_request_timeout_seconds) as http:
                response = await http.post(self.login_url, json=credentials)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("Phoenix authentication error: HTTP %s", status_code)
            if status_code in (401, 403):
                raise AuthenticationError(
                    "Phoenix rejected the configured credentials"
                ) from exc
            raise PhoenixRequestError(
                f"Phoenix authentication failed (HTTP {status_code})",
                status_code=status_code,
                payload=_response_body(exc.response),
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Phoenix authentication error: %s", exc)
            raise PhoenixRequestError(f"Phoenix authentication failed: {exc}") from exc

        data = _response_body(response)
        token = extract_token(data)

        ttl = float(self.config.phoenix_token_ttl_seconds)
        declared = declared_lifetime(data)
        if declared is not None:
            logger.info(
                "Phoenix declared a token lifetime of %ss (configured %ss)", declared, ttl
            )
            ttl = min(ttl, declared)

        self._token = token
        self._token_expiry = self._clock() + ttl
        return token

    def _clear_pending_auth(self, future: asyncio.Future) -> None:
        if self._pending_auth is future:
            self._pending_auth = None

    async def get_auth_headers(self) -> dict[str, str]:
        """Bearer headers, logging in first when the cached token is missing or expired."""
        if self._token_is_valid():
            token = self._token
        else:
            if self._pending_auth is None:
                self._pending_auth = asyncio.ensure_future(self.authenticate())
                self._pending_auth.add_done_callback(self._clear_pending_auth)
            # the cache may be invalidated again before this waiter resumes
            token = await asyncio.shield(self._pending_auth)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _authorized(self, what: str, method: str, url: str, **kwargs: Any) -> Any:
        headers = await self.get_auth_headers()
        try:
            async with self._http(self.config.phoenix_request_timeout_seconds) as http:
                response = await http.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("Error fetching %s: HTTP %s", what, status_code)
            if status_code == 401:
                self.invalidate_token()
            payload = _response_body(exc.response)
            raise PhoenixRequestError(
                failure_message(f"Error fetching {what}", status_code, payload),
                status_code=status_code,
                payload=payload,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Error fetching %s: %s", what, exc)
            raise PhoenixRequestError(f"Error fetching {what}: {exc}") from exc
        return _response_body(response)

    async def get_all_certificates(self) -> list[dict[str, Any]]:
        """Full certificate list (unfiltered)."""
        data = await self._authorized(
            "all certificates",
            "POST",
            self.config.list_all_certificates_api_url,
            json=LIST_FILTER,
        )
        return data or []

    async def get_certificate_details(self, cert_no: str) -> dict[str, Any]:
        """Single certificate; unwraps the ``Value.Certificate`` envelope when present."""
        url = self.config.phoenix_detail_api_url_template.replace(
            "{certNo}", quote(cert_no, safe="")
        )
        data = await self._authorized(f"certificate details for {cert_no}", "GET", url)
        if isinstance(data, dict):
            value = data.get("Value")
            if isinstance(value, dict) and value.get("Certificate"):
                return value["Certificate"]
        return data

    async def approve_calibration(
        self,
        calibration_id: str,
        revision_comment: str,
        justification_comment: str | None = None,
        ai_analysis: str | None = None,
    ) -> None:
        """Submit the approval to Phoenix. Raises PhoenixRequestError on failure."""
        if not calibration_id:
            raise ValueError("approve_calibration: calibration_id is required")
        headers = await self.get_auth_headers()
        url = self.host_origin() + self.config.phoenix_approve_path_template.format(
            calibrationId=quote(calibration_id, safe="")
        )
        params = {
            "revisionComment": revision_comment,
            "justificationComment": justification_comment or "",
            "AIAnalysis": ai_analysis or "",
        }
        try:
            async with self._http(self.config.phoenix_approve_timeout_seconds) as http:
                response = await http.get(url, headers=headers, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            payload = _response_body(exc.response)
            logger.error(
                "Phoenix approval failed: calibration_id=%s url=%s status=%s data=%r",
                calibration_id,
                url,
                status_code,
                payload,
            )
            if status_code == 401:
                self.invalidate_token()
            raise PhoenixRequestError(
                failure_message("Phoenix approval failed", status_code, payload),
                status_code=status_code,
                payload=payload,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Phoenix approval failed: calibration_id=%s url=%s error=%s",
                calibration_id,
                url,
                exc,
            )
            raise PhoenixRequestError(f"Phoenix approval failed: {exc}") from exc

        logger.info(
            "Phoenix approval successful: calibration_id=%s status=%s",
            calibration_id,
            response.status_code,
        )


phoenix_client = PhoenixClient()


def get_phoenix_client() -> PhoenixClient:
    """Dependency returning the process-wide client."""
    return phoenix_client
