#!/usr/bin/env python3
"""FastAPI server exposing the search gateway actions, with Prometheus metrics."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict

import httpx
from fastapi import Depends, FastAPI, Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field

from xpoxial import __version__
from xpoxial.services.gateway.service import (
    AdvancedSearchInput,
    ChatInput,
    SearchGatewayService,
    SummarizeAdvancedInput,
)
from xpoxial.services.shared.errors import init_sentry
from xpoxial.services.shared.logger import configure_logging
from xpoxial.services.shared.settings import get_settings

logger = logging.getLogger(__name__)

METRICS_REGISTRY = CollectorRegistry()
REQUEST_COUNT = Counter(
    "xpoxial_http_requests_total",
    "Total gateway HTTP requests",
    ["endpoint", "status"],
    registry=METRICS_REGISTRY,
)
REQUEST_LATENCY = Histogram(
    "xpoxial_http_latency_seconds",
    "Gateway HTTP request latency in seconds",
    ["endpoint"],
    registry=METRICS_REGISTRY,
)


class NewsQuery(BaseModel):
    query: str = Field(..., min_length=1)
    verbose: bool = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.observability.logging.level, settings.observability.logging.format)
    init_sentry()

    timeout = settings.search.cascade.provider_timeout_seconds
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        app.state.gateway = SearchGatewayService.create(settings, client=client)
        logger.info("Search gateway ready (environment=%s)", settings.environment)
        yield


app = FastAPI(title="Xpoxial Search", version=__version__, lifespan=lifespan)


def get_gateway(request: Request) -> SearchGatewayService:
    return request.app.state.gateway


@app.middleware("http")
async def _record_metrics(request: Request, call_next):
    endpoint = request.url.path
    start_time = time.time()
    status = "success"
    try:
        response = await call_next(request)
        if response.status_code >= 400:
            status = "error"
        return response
    except Exception:
        status = "error"
        raise
    finally:
        if endpoint != "/metrics":
            REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start_time)
            REQUEST_COUNT.labels(endpoint=endpoint, status=status).inc()


@app.get("/health")
def health() -> Dict[str, object]:
    return {"status": "ok", "version": __version__}


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(METRICS_REGISTRY), media_type=CONTENT_TYPE_LATEST)


@app.post("/search")
async def search(payload: Dict[str, Any], gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    # Invalid input is answered with the generic error, not a 422
    result = await gateway.process_search_query(payload)
    return result.to_wire()


@app.post("/search/advanced")
async def advanced_search(payload: AdvancedSearchInput,
                          gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    result = await gateway.perform_advanced_search(payload)
    return result.to_wire()


@app.post("/search/news")
async def news_search(payload: NewsQuery, gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    bundle = await gateway.search_news(payload.query, verbose=payload.verbose)
    return bundle.to_wire()


@app.get("/news/feed")
async def news_feed(verbose: bool = False, gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    bundle = await gateway.get_news_feed(verbose=verbose)
    return bundle.to_wire()


@app.get("/images/stock")
async def stock_images(verbose: bool = False, gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    bundle = await gateway.get_stock_images(verbose=verbose)
    return bundle.to_wire()


@app.post("/chat")
async def chat(payload: ChatInput, gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    result = await gateway.send_chat_message(payload)
    return result.to_wire()


@app.post("/summarize/advanced")
async def summarize_advanced(payload: SummarizeAdvancedInput,
                             gateway: SearchGatewayService = Depends(get_gateway)) -> Dict[str, Any]:
    result = await gateway.summarize_advanced_results(payload)
    return result.to_wire()


if __name__ == "__main__":
    import uvicorn

    server = get_settings().server
    uvicorn.run("xpoxial.services.gateway.fastapi_server:app", host=server.host, port=server.port)
