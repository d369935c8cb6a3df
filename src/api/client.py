"""
HTTP roster source backed by requests.

Implements the roster source contract (fetch_all, create, update, delete,
set_status) for one feature area. Blocking requests run in a worker thread
via asyncio.to_thread so the controller's event loop keeps serving the UI.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

import requests
from pydantic import ValidationError

from src.core import config
from src.core.errors import ConflictError, TransportError
from src.core.preview import SelectedFile
from util.logging import logger

from .schemas import RECORD_MODELS, ApiErrorBody, RosterRecord, StatusChangeRequest


@dataclass(frozen=True)
class EndpointMap:
    """Where one area's records live on the API."""
    collection: str
    # Envelope keys that may wrap the record list, checked before "data"
    collection_keys: Tuple[str, ...] = ()
    # Envelope keys that may wrap a single record in responses
    record_keys: Tuple[str, ...] = ()
    # Multipart with _method=PUT spoofing (avatar uploads) instead of JSON PUT
    multipart: bool = False


ENDPOINTS = {
    "personnel": EndpointMap("/property-custodian/personnel", record_keys=("personnel",), multipart=True),
    "accounting": EndpointMap("/ict/accountings", ("accountings",), ("user", "accounting"), multipart=True),
    "packages": EndpointMap("/property-custodian/dcp-packages", ("packages",), ("package",)),
}


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if value is None:
        return ""
    return str(value)


class HttpRosterSource:
    """Roster source for one area of the remote API."""

    def __init__(self, area: str, base_url: Optional[str] = None, token: Optional[str] = None,
                 session: Optional[requests.Session] = None, timeout: Optional[float] = None):
        if area not in ENDPOINTS:
            raise ValueError(f"No endpoints configured for area: {area}")
        self.area = area
        self.endpoints = ENDPOINTS[area]
        self.model: Type[RosterRecord] = RECORD_MODELS.get(area, RosterRecord)
        self.base_url = (base_url or config.get_api_base_url()).rstrip("/")
        self.token = token if token is not None else config.get_api_token()
        self.session = session or requests.Session()
        self.timeout = timeout or config.REQUEST_TIMEOUT_SEC

    # Plumbing

    def _url(self, suffix: str = "") -> str:
        return f"{self.base_url}{self.endpoints.collection}{suffix}"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _send(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self.session.request(method, url, headers=self._headers(),
                                            timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{self.area} {method} {url} failed: {e}")
            raise TransportError(f"Unable to reach the server: {e}") from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if not response.ok:
            error = ApiErrorBody.model_validate(body if isinstance(body, dict) else {})
            field_errors = error.first_errors()
            cls = ConflictError if field_errors else TransportError
            logger.log_operation(f"api.{self.area}", "failed",
                                 {"method": method, "status": response.status_code, "fields": sorted(field_errors)})
            raise cls(error.message, field_errors, response.status_code)
        return body

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        return await asyncio.to_thread(self._send, method, url, **kwargs)

    def _parse(self, data: Any) -> Dict[str, Any]:
        try:
            return self.model.model_validate(data).to_record()
        except ValidationError as e:
            raise TransportError(f"Unexpected {self.area} record from server: {e.error_count()} error(s)") from e

    def _unwrap(self, body: Any) -> Dict[str, Any]:
        if isinstance(body, dict):
            for key in self.endpoints.record_keys:
                if isinstance(body.get(key), dict):
                    return self._parse(body[key])
            if isinstance(body.get("data"), dict):
                return self._parse(body["data"])
        return self._parse(body)

    def _encode(self, payload: Dict[str, Any], method_override: Optional[str] = None) -> Dict[str, Any]:
        """requests kwargs for a form payload."""
        if not self.endpoints.multipart:
            body = {k: v for k, v in payload.items() if not isinstance(v, SelectedFile)}
            return {"json": body}

        data: Dict[str, str] = {}
        files = {}
        for key, value in payload.items():
            if isinstance(value, SelectedFile):
                content = value.data
                if content is None and value.path:
                    with open(value.path, "rb") as handle:
                        content = handle.read()
                files[key] = (value.name, content or b"", value.content_type)
            else:
                data[key] = _form_value(value)
        if method_override:
            data["_method"] = method_override
        return {"data": data, "files": files or None}

    # Roster source contract

    async def fetch_all(self) -> List[Dict[str, Any]]:
        body = await self._request("GET", self._url(), params={"per_page": config.ROSTER_FETCH_LIMIT})
        items = body
        if isinstance(body, dict):
            for key in (*self.endpoints.collection_keys, "data"):
                if isinstance(body.get(key), list):
                    items = body[key]
                    break
        if not isinstance(items, list):
            logger.log_operation(f"api.{self.area}", "failed",
                                 {"method": "GET", "keys": sorted(body) if isinstance(body, dict) else []})
            raise TransportError(f"Unexpected {self.area} list from server")
        return [self._parse(item) for item in items]

    async def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        body = await self._request("POST", self._url(), **self._encode(payload))
        return self._unwrap(body)

    async def update(self, record_id: Any, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.endpoints.multipart:
            body = await self._request("POST", self._url(f"/{record_id}"), **self._encode(payload, "PUT"))
        else:
            body = await self._request("PUT", self._url(f"/{record_id}"), **self._encode(payload))
        return self._unwrap(body)

    async def delete(self, record_id: Any) -> None:
        await self._request("DELETE", self._url(f"/{record_id}"))

    async def set_status(self, record_id: Any, status: str, reason: Optional[str] = None) -> Dict[str, Any]:
        if status == "active":
            body = await self._request("PATCH", self._url(f"/{record_id}/activate"))
        elif status == "inactive":
            request = StatusChangeRequest(deactivate_reason=reason or "")
            body = await self._request("PATCH", self._url(f"/{record_id}/deactivate"),
                                       json=request.model_dump())
        else:
            raise ValueError(f"Unknown status: {status}")
        return self._unwrap(body)
