# bonfire_node/api.py

import logging
import time

import requests

from bonfire_node import config

logger = logging.getLogger(__name__)


class RelayError(Exception):
    """Raised when a relay request fails (HTTP error or all retries exhausted)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RelayClient:
    """
    HTTP client for the relay (key directory + ciphertext store).
    *session* may be any object with a requests-style request() method;
    the timeout is only passed to a real requests.Session.
    """

    def __init__(self, base_url: str = None, session=None, timeout: int = None, max_retries: int = None):
        self.base_url = (base_url or config.RELAY_URL).rstrip("/")
        self.session = session if session is not None else requests.Session()
        self.timeout = timeout or config.RELAY_TIMEOUT
        self.max_retries = max(1, max_retries or config.RELAY_MAX_RETRIES)

    def _with_retry(self, func, retry_timeouts: bool = True):
        """
        Execute *func* with exponential-backoff retry on transient errors.
        HTTP error responses are raised immediately. A read timeout is only
        retried when *retry_timeouts* is set: the relay may already have
        committed the request.
        """
        last_exc = None
        for attempt in range(self.max_retries):
            try:
                return func()
            except requests.exceptions.ConnectionError as exc:
                # includes ConnectTimeout: the request never reached the relay
                last_exc = exc
            except requests.exceptions.Timeout as exc:
                if not retry_timeouts:
                    raise RelayError(f"Relay timed out (not retried): {exc}") from exc
                last_exc = exc
            except requests.exceptions.RequestException as exc:
                raise RelayError(f"Relay request error: {exc}") from exc

            if attempt < self.max_retries - 1:
                wait = 2 ** attempt
                logger.warning(
                    "Relay retry %d/%d in %ds: %s", attempt + 1, self.max_retries, wait, last_exc
                )
                time.sleep(wait)

        raise RelayError(
            f"Relay failed after {self.max_retries} attempts: {last_exc}"
        ) from last_exc

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        if isinstance(self.session, requests.Session):
            kwargs["timeout"] = self.timeout

        def _call():
            r = self.session.request(method, url, **kwargs)
            if r.status_code >= 400:
                try:
                    detail = r.json().get("detail", r.text)
                except ValueError:
                    detail = r.text
                raise RelayError(f"{method} {path} -> {r.status_code}: {detail}", r.status_code)
            logger.debug("Relay %s %s OK", method, path)
            return r.json()

        # POST is not idempotent (a retried insert would store the message twice)
        return self._with_retry(_call, retry_timeouts=method != "POST")

    # ---------------------------------------------------------------------------
    # Key directory
    # ---------------------------------------------------------------------------

    def register_user(self, email: str, public_key: str, username: str = None) -> dict:
        return self._request(
            "POST", "/users",
            json={"email": email, "public_key": public_key, "username": username},
        )

    def get_user(self, user_id: str) -> dict:
        return self._request("GET", f"/users/{user_id}")

    def list_users(self, exclude_id: str = None) -> list:
        params = {"exclude": exclude_id} if exclude_id else None
        return self._request("GET", "/users", params=params)

    # ---------------------------------------------------------------------------
    # Messages
    # ---------------------------------------------------------------------------

    def insert_message(self, sender_id: str, receiver_id: str, ciphertext: str) -> dict:
        return self._request(
            "POST", "/messages",
            json={"sender_id": sender_id, "receiver_id": receiver_id, "ciphertext": ciphertext},
        )

    def list_messages(self, user_a: str, user_b: str, after: int = 0) -> list:
        return self._request("GET", "/messages", params={"a": user_a, "b": user_b, "after": after})
