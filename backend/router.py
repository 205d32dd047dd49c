"""
Request router for the donation API.

DonationRouter.handle is the single entry point: it maps method + path to a
handler and turns every outcome, including unexpected exceptions, into an
ApiResult. Nothing raised by a handler escapes handle().
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from auth import authorize_delete, delete_criteria, extract_record_id
from config import Settings
from database import DonationStore, serialize_document
from envelope import ApiRequest, ApiResult, Failure, Preflight, Success, now_iso
from errors import DonationServiceError, MethodNotAllowedError, RequestValidationError, RouteNotFoundError
from queries import build_filter, pagination_summary, resolve_page
from records import normalize_donation, require_fields, validate_batch
from schemas import ListParams

logger = logging.getLogger(__name__)

AVAILABLE_ENDPOINTS = ["/api/test", "/api/donations", "/health"]

Handler = Callable[[ApiRequest], Success]


class DonationRouter:
    def __init__(self, settings: Settings, store: DonationStore):
        self.settings = settings
        self.store = store

    def handle(self, request: ApiRequest) -> ApiResult:
        method = request.method.upper()
        if method == "OPTIONS":
            return Preflight()
        try:
            handler = self._resolve(method, request.path)
            result: ApiResult = handler(request)
        except DonationServiceError as e:
            result = Failure(
                e.http_status,
                e.message,
                e.details,
                datetime.now(timezone.utc) if e.http_status >= 500 else None,
            )
        except Exception as e:
            logger.exception("Unhandled error for %s %s", method, request.path,
                             extra={"method": method, "path": request.path, "error_type": type(e).__name__})
            result = Failure(500, str(e) or "Internal Server Error", timestamp=datetime.now(timezone.utc))
        logger.info("%s %s -> %s", method, request.path, result.status,
                    extra={"method": method, "path": request.path, "status": result.status})
        return result

    # --- Routing ---

    def _routes(self, path: str) -> Optional[Dict[str, Handler]]:
        if path in ("/api/test", "/api/test/"):
            return {"GET": self.status_report}
        if path == "/api/donations" or path.startswith("/api/donations/"):
            return {
                "GET": self.list_donations,
                "POST": self.create_donations,
                "DELETE": self.delete_donation,
            }
        if path in ("/health", "/health/"):
            return {"GET": self.health}
        return None

    def _resolve(self, method: str, path: str) -> Handler:
        routes = self._routes(path)
        if routes is None:
            raise RouteNotFoundError(path, AVAILABLE_ENDPOINTS)
        if method not in routes:
            raise MethodNotAllowedError(method)
        return routes[method]

    # --- Handlers ---

    def status_report(self, request: ApiRequest) -> Success:
        health = self.store.check_health()
        return Success({
            "success": health.ok,
            "message": "服务器运行正常" if health.ok else "服务器连接异常",
            "service": self.settings.service_name,
            "timestamp": now_iso(),
            "mongodb": {"connected": health.ok, "message": health.message},
        })

    def health(self, request: ApiRequest) -> Success:
        health = self.store.check_health()
        return Success({
            "status": "ok",
            "timestamp": now_iso(),
            "service": self.settings.service_name,
            "mongodb": {"connected": health.ok, "message": health.message},
        })

    def list_donations(self, request: ApiRequest) -> Success:
        params = ListParams.model_validate(dict(request.query))
        criteria = build_filter(params)
        page = resolve_page(params)
        docs = self.store.find(criteria, page)
        total = self.store.count(criteria)
        return Success({
            "success": True,
            "data": [serialize_document(d) for d in docs],
            "pagination": pagination_summary(page, total),
        })

    def create_donations(self, request: ApiRequest) -> Success:
        body = _parse_body(request.body)
        if isinstance(body.get("data"), list):
            return self._insert_batch(body["data"])

        require_fields(body)
        doc = normalize_donation(body).model_dump()
        inserted_id = self.store.insert_one(doc)
        return Success({
            "success": True,
            "message": "数据保存成功",
            "id": inserted_id,
            "data": serialize_document({**doc, "_id": inserted_id}),
        })

    def _insert_batch(self, candidates: List[Any]) -> Success:
        records = validate_batch(candidates)
        inserted_ids = self.store.insert_many([r.model_dump() for r in records])
        return Success({
            "success": True,
            "message": f"成功插入 {len(inserted_ids)} 条记录",
            "insertedCount": len(inserted_ids),
            "insertedIds": inserted_ids,
        })

    def delete_donation(self, request: ApiRequest) -> Success:
        authorize_delete(request.query.get("adminPassword"), self.settings.admin_password)
        record_id = extract_record_id(request.path)
        deleted = self.store.delete_one(delete_criteria(record_id))
        if deleted:
            logger.info("Deleted donation %s", record_id)
        return Success({
            "success": deleted > 0,
            "deletedCount": deleted,
            "message": "删除成功" if deleted > 0 else "未找到记录",
        })


def _parse_body(raw: Optional[str]) -> Dict[str, Any]:
    try:
        body = json.loads(raw or "")
    except ValueError:
        raise RequestValidationError("Invalid JSON format")
    if not isinstance(body, dict):
        raise RequestValidationError("Request body must be a JSON object")
    return body
