import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from config import Settings, get_settings
from database import DonationStore, MongoDonationStore
from envelope import ApiRequest, to_http
from observability import setup_logging
from router import DonationRouter

logger = logging.getLogger(__name__)

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


class UnicodeJSONResponse(JSONResponse):
    """Keeps Chinese messages readable on the wire."""

    def render(self, content) -> bytes:
        return json.dumps(content, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def create_app(settings: Optional[Settings] = None, store: Optional[DonationStore] = None) -> FastAPI:
    settings = settings or get_settings()
    store = store or MongoDonationStore(settings)
    donation_router = DonationRouter(settings, store)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("Donation API starting, database=%s", settings.database_name)
        try:
            yield
        finally:
            store.close()

    # No docs routes: every path outside the router table must answer 404
    app = FastAPI(
        title="Donation Collection API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.router = donation_router

    # One route for everything; DonationRouter owns dispatch, 404 and 405
    @app.api_route("/{full_path:path}", methods=ALL_METHODS, include_in_schema=False)
    async def dispatch(full_path: str, request: Request):
        body = (await request.body()).decode("utf-8", errors="replace")
        api_request = ApiRequest(
            method=request.method,
            path=request.url.path,
            query=dict(request.query_params),
            headers=dict(request.headers),
            body=body,
        )
        # pymongo is blocking; keep it off the event loop
        result = await run_in_threadpool(donation_router.handle, api_request)
        status, payload, headers = to_http(result)
        if payload is None:
            return Response(status_code=status, headers=headers)
        return UnicodeJSONResponse(payload, status_code=status, headers=headers)

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
