"""
HTTP Transport for the Supabase Backend

Low-level client: base URL, keys, default headers and the one piece of
real retry logic in the system, fetch_with_retry.

Retry policy: any transport failure or non-2xx answer is retried after
backoff_base * 2^attempt seconds (1s, 2s, ... with the defaults) until
the attempt budget is spent; the last error propagates to the caller.
"""

import time
from typing import Any, Callable, Optional

import requests
import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import AppSettings, SupabaseSettings, get_settings
from expense_tracker.services.remote.interface import (
    HTTPStatusError,
    NetworkError,
    RemoteError,
)


logger = structlog.get_logger(__name__)


def _error_message(response: requests.Response) -> str:
    """Pull the most useful message out of an error body."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])

    text = (response.text or "").strip()
    if text:
        return text[:200]
    return f"HTTP error! status: {response.status_code}"


def _send(http: requests.Session, method: str, url: str, **kwargs) -> requests.Response:
    try:
        response = http.request(method, url, **kwargs)
    except requests.RequestException as e:
        raise NetworkError(f"{method} {url} failed: {e}") from e

    if not 200 <= response.status_code < 300:
        raise HTTPStatusError(response.status_code, _error_message(response), url=url)
    return response


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "http_retry_scheduled",
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(error),
    )


def fetch_with_retry(
    http: requests.Session,
    method: str,
    url: str,
    retries: int = 3,
    backoff_base: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    **kwargs,
) -> requests.Response:
    """
    Issue an HTTP request, retrying with exponential backoff.

    Args:
        http: Session used to send the request
        method: HTTP verb
        url: Absolute URL
        retries: Total attempts, including the first
        backoff_base: Delay before the first retry; doubles each time
        sleep: Injected so tests do not wait
        **kwargs: Passed through to requests (params, json, headers, timeout)

    Returns:
        The first 2xx response

    Raises:
        HTTPStatusError: If the last attempt got a non-2xx answer
        NetworkError: If the last attempt could not reach the server
    """
    headers = dict(kwargs.pop("headers", None) or {})
    headers["Cache-Control"] = "no-cache"

    retrying = Retrying(
        stop=stop_after_attempt(retries),
        wait=wait_exponential(multiplier=backoff_base, exp_base=2, min=0),
        retry=retry_if_exception_type(RemoteError),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    return retrying(_send, http, method, url, headers=headers, **kwargs)


class SupabaseClient:
    """
    Low-level Supabase client wrapper.

    Holds the anon key and, once signed in, the user's access token.
    Higher-level services call auth() and rest() and never build URLs.
    """

    def __init__(
        self,
        settings: Optional[SupabaseSettings] = None,
        app_settings: Optional[AppSettings] = None,
        http: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._settings = settings or get_settings().supabase
        app = app_settings or get_settings().app
        self._retries = app.fetch_retries
        self._backoff_base = app.backoff_base_seconds
        self._http = http or requests.Session()
        self._sleep = sleep
        self._access_token: Optional[str] = None

    @property
    def base_url(self) -> str:
        return self._settings.url

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def set_access_token(self, token: Optional[str]) -> None:
        """Use this token for subsequent calls (None falls back to the anon key)."""
        self._access_token = token

    def _headers(self, access_token: Optional[str], extra: Optional[dict]) -> dict:
        token = access_token or self._access_token or self._settings.anon_key
        headers = {
            "apikey": self._settings.anon_key,
            "Authorization": f"Bearer {token}",
            "X-Client-Info": self._settings.client_info,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
        access_token: Optional[str] = None,
    ) -> requests.Response:
        """Send a request to a path under the project URL."""
        url = f"{self._settings.url}{path}"
        return fetch_with_retry(
            self._http,
            method,
            url,
            retries=self._retries,
            backoff_base=self._backoff_base,
            sleep=self._sleep,
            params=params,
            json=json,
            headers=self._headers(access_token, headers),
            timeout=self._settings.request_timeout_seconds,
        )

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return None
        return response.json()

    def auth(self, method: str, path: str, **kwargs) -> Any:
        """Call a GoTrue endpoint and decode the JSON answer."""
        return self._decode(self.request(method, f"/auth/v1{path}", **kwargs))

    def rest(self, method: str, table: str, **kwargs) -> Any:
        """Call a PostgREST table endpoint and decode the JSON answer."""
        return self._decode(self.request(method, f"/rest/v1/{table}", **kwargs))

    def close(self) -> None:
        self._http.close()
