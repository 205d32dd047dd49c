"""
Request and result types passed through the router.

Handlers produce Success, Failure or Preflight; only to_http turns a result into
a status code, a body and headers.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
PREFLIGHT_HEADERS = {**CORS_HEADERS, "Access-Control-Max-Age": "86400"}


@dataclass
class ApiRequest:
    method: str
    path: str
    query: Mapping[str, str] = field(default_factory=dict)
    # Part of the request contract; no current handler reads it
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[str] = None


@dataclass
class Success:
    payload: Dict[str, Any]
    status: int = 200


@dataclass
class Failure:
    status: int
    error: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None


@dataclass
class Preflight:
    pass


ApiResult = Union[Success, Failure, Preflight]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_http(result: ApiResult) -> Tuple[int, Optional[Dict[str, Any]], Dict[str, str]]:
    if isinstance(result, Preflight):
        return 204, None, dict(PREFLIGHT_HEADERS)
    if isinstance(result, Success):
        return result.status, result.payload, dict(CORS_HEADERS)
    body: Dict[str, Any] = {"success": False, "error": result.error, **result.details}
    if result.timestamp is not None:
        body["timestamp"] = result.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return result.status, body, dict(CORS_HEADERS)
