"""
Meta Graph API Client
Thin request builder/executor for the Marketing API (campaigns, ad sets, ads,
insights, Ad Library). Every call returns a GraphResponse; upstream business
errors are classified, never raised, because the Graph API can answer
HTTP 200 with an embedded `error` object.
"""

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import httpx

from opsboard.config import get_settings

logger = logging.getLogger(__name__)
# httpx logs full request URLs, and Graph GETs carry the token in the query string
logging.getLogger("httpx").setLevel(logging.WARNING)

# Upstream error codes
INVALID_TOKEN_CODES = {190, 102}
PERMISSION_CODES = {10} | set(range(200, 300))


class GraphErrorKind(str, enum.Enum):
    INVALID_TOKEN = "invalid_token"
    PERMISSION = "permission"
    UPSTREAM = "upstream"
    TRANSPORT = "transport"


@dataclass
class GraphError:
    kind: GraphErrorKind
    message: str
    code: Optional[int] = None
    subcode: Optional[int] = None

    @classmethod
    def from_body(cls, error: dict) -> "GraphError":
        code = error.get("code")
        try:
            code = int(code) if code is not None else None
        except (TypeError, ValueError):
            code = None
        if code in INVALID_TOKEN_CODES:
            kind = GraphErrorKind.INVALID_TOKEN
        elif code in PERMISSION_CODES:
            kind = GraphErrorKind.PERMISSION
        else:
            kind = GraphErrorKind.UPSTREAM
        return cls(
            kind=kind,
            message=error.get("message") or "Unknown Meta API error",
            code=code,
            subcode=error.get("error_subcode"),
        )

    @property
    def user_message(self) -> str:
        """Message shown on the dashboard for this class of failure."""
        if self.kind == GraphErrorKind.INVALID_TOKEN:
            return "Meta access token is invalid or expired. Enter a new token in Settings."
        if self.kind == GraphErrorKind.PERMISSION:
            return (
                "The Meta app lacks permission for this request. Complete the app review / "
                f"identity verification required by Meta. ({self.message})"
            )
        return self.message


@dataclass
class GraphResponse:
    data: Any = None
    paging: Optional[dict] = None
    error: Optional[GraphError] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def items(self) -> list:
        """The `data` list of an edge response (empty when absent or on error)."""
        if isinstance(self.data, dict) and isinstance(self.data.get("data"), list):
            return self.data["data"]
        return []

    @property
    def after(self) -> Optional[str]:
        """Opaque cursor for the next page, passed through unchanged."""
        return ((self.paging or {}).get("cursors") or {}).get("after")


@dataclass
class MetaGraphClient:
    """
    One client per request. Holds the access token and an httpx.AsyncClient;
    pass `http` to share a client (or a MockTransport-backed one in tests).
    """
    access_token: str
    base_url: str = ""
    timeout: float = 0.0
    http: Optional[httpx.AsyncClient] = None
    _owns_http: bool = field(default=False, repr=False)

    def __post_init__(self):
        settings = get_settings()
        self.base_url = (self.base_url or settings.meta_graph_url).rstrip("/")
        self.timeout = self.timeout or settings.meta_request_timeout
        if self.http is None:
            self.http = httpx.AsyncClient(timeout=self.timeout)
            self._owns_http = True

    async def __aenter__(self) -> "MetaGraphClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self):
        if self._owns_http and self.http is not None:
            await self.http.aclose()
            self.http = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get(
        self,
        path: str,
        fields: Optional[list[str]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> GraphResponse:
        """GET one node or edge page. Does not follow `paging.next`."""
        query: dict[str, Any] = {}
        if fields:
            query["fields"] = ",".join(fields)
        for key, value in (params or {}).items():
            if value is None or value == "":
                continue
            query[key] = json.dumps(value) if isinstance(value, (list, dict)) else value
        logger.debug(f"Graph GET {path} params={sorted(query)}")
        query["access_token"] = self.access_token
        return await self._send("GET", path, params=query)

    async def post(self, path: str, data: dict[str, Any]) -> GraphResponse:
        """POST a form-encoded update to one node."""
        body = {k: str(v) for k, v in data.items() if v is not None}
        logger.info(f"Graph POST {path} fields={sorted(body)}")
        body["access_token"] = self.access_token
        return await self._send("POST", path, data=body)

    async def _send(self, method: str, path: str, **kwargs) -> GraphResponse:
        try:
            response = await self.http.request(method, self._url(path), timeout=self.timeout, **kwargs)
        except httpx.TimeoutException:
            logger.warning(f"Graph {method} {path} timed out after {self.timeout}s")
            return GraphResponse(error=GraphError(GraphErrorKind.TRANSPORT, "Meta API request timed out."))
        except httpx.HTTPError as e:
            logger.warning(f"Graph {method} {path} transport error: {type(e).__name__}")
            return GraphResponse(error=GraphError(GraphErrorKind.TRANSPORT, "Could not reach the Meta API."))

        try:
            body = response.json()
        except ValueError:
            body = None

        # Body first: 200 responses may still carry an error object
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            err = GraphError.from_body(body["error"])
            logger.warning(f"Graph {method} {path} error code={err.code} kind={err.kind.value}: {err.message}")
            return GraphResponse(error=err, status_code=response.status_code)

        if not response.is_success or body is None:
            logger.warning(f"Graph {method} {path} failed with HTTP {response.status_code}")
            return GraphResponse(
                error=GraphError(GraphErrorKind.TRANSPORT, f"Meta API returned HTTP {response.status_code}."),
                status_code=response.status_code,
            )

        paging = body.get("paging") if isinstance(body, dict) else None
        return GraphResponse(data=body, paging=paging, status_code=response.status_code)


def create_graph_client(access_token: str, http: Optional[httpx.AsyncClient] = None) -> MetaGraphClient:
    """Factory function to create a Graph client for one request."""
    return MetaGraphClient(access_token=access_token, http=http)


async def get_graph_http() -> AsyncIterator[httpx.AsyncClient]:
    """Dependency: one outbound HTTP client per request, closed when the request ends."""
    async with httpx.AsyncClient(timeout=get_settings().meta_request_timeout) as http:
        yield http
