"""
graph_client.py — Authenticated transport for the Facebook Graph API.

Every request carries the access token as a query parameter and the
accept header the Graph API expects. Successful bodies come back as a
GraphResponse tagged "json" or "text"; every failure (HTTP 4xx/5xx or a
network problem) is normalized into a GraphApiError before it reaches
the publishing code.

Usage (standalone credential check):
    python tools/graph_client.py
"""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Optional

import requests

from config import GRAPH_API_VERSION, GRAPH_HOST, GRAPH_TIMEOUT, INSTAGRAM_ACCESS_TOKEN

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "application/json,text/*;q=0.99"


@dataclass(frozen=True)
class GraphResponse:
    """A successful Graph response: kind is "json" (parsed body) or "text" (raw body)."""
    kind: str
    value: Any

    @property
    def is_json(self) -> bool:
        return self.kind == "json" and isinstance(self.value, dict)


class GraphApiError(Exception):
    """
    A failed Graph call.

    Attributes:
        message: Human-readable message (remote message when available)
        status_code: HTTP status, or None for network failures
        error: The remote "error" object ({message, code, error_subcode, ...})
        headers: Response headers
    """

    def __init__(self, message: str, status_code: Optional[int] = None,
                 error: Optional[dict] = None, headers: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.error = error or {}
        self.headers = headers or {}
        super().__init__(message)

    @classmethod
    def from_response(cls, resp: requests.Response) -> "GraphApiError":
        try:
            body = resp.json()
        except ValueError:
            body = None

        error = {}
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]

        message = error.get("message") or f"Graph API request failed with status {resp.status_code}"
        return cls(message, resp.status_code, error, dict(resp.headers))


class GraphClient:
    """Thin requests wrapper that authenticates with a user access token."""

    def __init__(self, access_token: str = INSTAGRAM_ACCESS_TOKEN,
                 session: Optional[requests.Session] = None,
                 timeout: float = GRAPH_TIMEOUT):
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method: str, url: str, params: Optional[dict] = None,
                headers: Optional[dict] = None) -> GraphResponse:
        query = {key: _query_value(value) for key, value in (params or {}).items()}
        query["access_token"] = self.access_token

        all_headers = {"accept": ACCEPT_HEADER}
        all_headers.update(headers or {})

        logger.debug("%s %s params=%s", method, url, sorted(k for k in query if k != "access_token"))
        try:
            resp = self.session.request(method, url, params=query, headers=all_headers,
                                        timeout=self.timeout)
        except requests.RequestException as e:
            raise GraphApiError(str(e), error={"message": str(e)}) from e

        if not resp.ok:
            raise GraphApiError.from_response(resp)

        try:
            return GraphResponse("json", resp.json())
        except ValueError:
            return GraphResponse("text", resp.text)

    def verify_credentials(self, version: str = GRAPH_API_VERSION,
                           host: str = GRAPH_HOST) -> dict:
        """Fetch /me with the configured token. Raises GraphApiError if the token is rejected."""
        resp = self.request("GET", f"https://{host}/{version}/me", params={"fields": "id"})
        if not resp.is_json:
            raise GraphApiError(f"Credential check returned a non-JSON body: {resp.value!r}")
        return resp.value


def _query_value(value):
    # Graph expects lowercase booleans in the query string
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def main():
    if not INSTAGRAM_ACCESS_TOKEN:
        print("ERROR: INSTAGRAM_ACCESS_TOKEN must be set in .env")
        sys.exit(1)

    print("Checking Instagram credentials...")
    try:
        me = GraphClient().verify_credentials()
    except GraphApiError as e:
        print(f"Failed: {e.message} (status {e.status_code})")
        sys.exit(1)

    print(f"Success! Token belongs to id {me.get('id')}")


if __name__ == "__main__":
    main()
