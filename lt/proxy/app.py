"""
Label and image-extraction proxy (FastAPI)
==========================================

Keeps third-party API keys on the server. Two pass-through endpoints:

    GET  /label-proxy?type=search&q=<text>      supplement label search
    GET  /label-proxy?type=label&dsldId=<id>    one label by id
    POST /extract-proxy  {image_url, question}  image question answering

plus ``GET /label-search?q=<text>``, which runs the same search and answers with
normalized products instead of the upstream body. ``/proxy`` serves both on one
path for hosts that only route a single function: GET behaves like
``/label-proxy`` and any other method like ``/extract-proxy``. Start it with

    $ python -m lt.proxy

or ``uvicorn lt.proxy.app:app``.
"""

import logging
from dataclasses import asdict
from urllib.parse import quote

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from lt.common.logger import get_logger
from lt.proxy.labels import normalize_label_search
from lt.proxy.settings import ProxySettings

UPSTREAM_TIMEOUT = 10.0

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}

ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

log = get_logger(name="loadtimer-proxy", level=logging.INFO, console=True, historical_debugs=0)


def _error(status_code, message, headers=None, **extra):
    return JSONResponse({"error": message, **extra}, status_code=status_code, headers=headers)


def create_app(settings: ProxySettings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the proxy app. ``transport`` replaces the network for every upstream call (tests pass a MockTransport)."""
    settings = settings or ProxySettings.from_env()
    for problem in settings.problems:
        log.warning(f"Proxy configuration problem: {problem}")

    app = FastAPI(title="LoadTimer proxy")
    app.state.settings = settings

    def _client():
        return httpx.AsyncClient(timeout=UPSTREAM_TIMEOUT, transport=transport)

    def _missing(setting, fallback):
        problem = settings.problem_for(setting)
        return str(problem) if problem is not None else fallback

    async def _fetch_label_json(url):
        async with _client() as client:
            response = await client.get(url, headers={"X-API-KEY": settings.label_api_key})
        return response.json()

    def _label_url(kind, q, dsld_id):
        if kind == "search" and q is not None:
            return f"{settings.label_api_url}/browse-products/?method=by_keyword&q={quote(q, safe='')}"
        if kind == "label" and dsld_id is not None:
            return f"{settings.label_api_url}/label/{quote(dsld_id, safe='')}"
        return None

    async def _label_response(kind, q, dsld_id):
        # The key is checked first, so a misconfigured deploy answers 500 whatever the parameters
        if not settings.label_api_key:
            return _error(500, _missing("DSLD_API_KEY", "DSLD_API_KEY not set in environment"))

        url = _label_url(kind, q, dsld_id)
        if url is None:
            return _error(400, "Invalid request parameters")

        try:
            data = await _fetch_label_json(url)
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Label lookup failed for type={kind}: {e!r}")
            return _error(500, str(e) or type(e).__name__)
        return JSONResponse(data, status_code=200)

    @app.get("/label-proxy")
    async def label_proxy(
            kind: str | None = Query(None, alias="type"),
            q: str | None = None,
            dsld_id: str | None = Query(None, alias="dsldId")):
        return await _label_response(kind, q, dsld_id)

    @app.get("/label-search")
    async def label_search(q: str | None = None):
        if not settings.label_api_key:
            return _error(500, _missing("DSLD_API_KEY", "DSLD_API_KEY not set in environment"))
        if not q or not q.strip():
            return _error(400, "Invalid request parameters")

        try:
            data = await _fetch_label_json(_label_url("search", q.strip(), None))
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Label search failed for '{q}': {e!r}")
            return _error(500, str(e) or type(e).__name__)

        products = normalize_label_search(data)
        log.info(f"Label search '{q}' matched {len(products)} products")
        return {"products": [asdict(p) for p in products]}

    async def _extract_response(request):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        if request.method != "POST":
            return _error(405, "Method not allowed", headers=CORS_HEADERS)
        if not settings.vision_api_key:
            log.error("Vision API key not configured")
            return _error(500, _missing("VISION_API_KEY", "Vision API key not configured"), headers=CORS_HEADERS)

        try:
            body = await request.json()
        except ValueError:
            return _error(400, "Request body must be JSON", headers=CORS_HEADERS)
        image_url = body.get("image_url") if isinstance(body, dict) else None
        question = body.get("question") if isinstance(body, dict) else None
        if not image_url or not question:
            return _error(400, "Missing required fields: image_url and question", headers=CORS_HEADERS)

        url = f"{settings.vision_api_url}/query"
        try:
            async with _client() as client:
                response = await client.post(
                    url,
                    json={"image_url": image_url, "question": question},
                    headers={"Authorization": f"Bearer {settings.vision_api_key}"},
                )
            if response.is_error:
                log.error(f"Vision API answered {response.status_code}: {response.text}")
                return _error(
                    500, "Internal server error",
                    headers=CORS_HEADERS,
                    details=f"Vision API error: {response.status_code} - {response.text}",
                )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Vision proxy error: {e!r}")
            return _error(500, "Internal server error", headers=CORS_HEADERS, details=str(e) or type(e).__name__)

        return JSONResponse(data, status_code=200, headers=CORS_HEADERS)

    @app.api_route("/extract-proxy", methods=ALL_METHODS)
    async def extract_proxy(request: Request):
        return await _extract_response(request)

    # Single-path deploys: GET is a label lookup, every other method goes to image extraction.
    @app.api_route("/proxy", methods=ALL_METHODS)
    async def combined_proxy(request: Request):
        if request.method == "GET":
            params = request.query_params
            return await _label_response(params.get("type"), params.get("q"), params.get("dsldId"))
        return await _extract_response(request)

    return app


# Module-level app for ``uvicorn lt.proxy.app:app``. Import-time validation only records problems, never raises.
app = create_app()
