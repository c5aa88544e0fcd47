from __future__ import annotations

import asyncio
import base64
import hashlib
import json
from typing import Any

import requests

from .errors import NotConnectedError
from .events import HTTP_AUTH_KIND, EventTemplate
from .signer import RemoteSigner

AUTH_SCHEME = "Nostr"


def _sha256_hex(data: bytes) -> str:
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()


def build_http_auth_template(
    url: str, method: str, payload: dict[str, Any] | None = None
) -> EventTemplate:
    """NIP-98 auth event template bound to one URL and method (and optionally the JSON body)."""
    tags = [["u", url], ["method", method.upper()]]
    if payload is not None:
        tags.append(["payload", _sha256_hex(json.dumps(payload).encode())])
    return EventTemplate(kind=HTTP_AUTH_KIND, content="", tags=tags)


async def get_authorization_header(
    signer: RemoteSigner, url: str, method: str, payload: dict[str, Any] | None = None
) -> str:
    """Sign a NIP-98 event remotely and encode it as an Authorization header value.

    Fails closed: raises NotConnectedError rather than sending an unauthenticated request.
    """
    if not signer.is_connected():
        raise NotConnectedError("Not connected to Nostr. Use connect first.")
    event = await signer.sign_event(build_http_auth_template(url, method, payload))
    token = base64.b64encode(json.dumps(event.to_dict()).encode()).decode("ascii")
    return f"{AUTH_SCHEME} {token}"


class NostrAuthHttpClient:
    """HTTP client whose requests carry a fresh NIP-98 Authorization header."""

    def __init__(self, base_url: str, signer: RemoteSigner, timeout: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.signer = signer
        self.timeout = timeout
        self._session = requests.Session()

    async def request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> requests.Response:
        """Make a signed request; a JSON body is bound into the auth event."""
        url = f"{self.base_url}{path}"

        # Serialize JSON body
        import json as json_module

        body = json_module.dumps(json) if json is not None else None
        authorization = await get_authorization_header(self.signer, url, method, json)

        headers = {"Authorization": authorization}
        if body is not None:
            headers["Content-Type"] = "application/json"

        return await asyncio.to_thread(
            self._session.request,
            method.upper(),
            url,
            data=body,
            headers=headers,
            timeout=self.timeout,
        )

    async def get(self, path: str) -> requests.Response:
        return await self.request("GET", path)

    async def post(self, path: str, json: dict[str, Any] | None = None) -> requests.Response:
        return await self.request("POST", path, json=json)

    def close(self) -> None:
        self._session.close()
