# Load environment variables FIRST (before any other imports)
from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

# Silence verbose loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logger = logging.getLogger("web_server")

from config import RATE_LIMIT_CAPACITY, RATE_LIMIT_PER_MINUTE
from collector import load_observations
from collector.observation_loader import RetryPolicy
from collector.question_forwarder import forward_question
from collector.station_fetcher import fetch_stations
from collector.upstream_proxy import RateLimitedProxy
from core.errors import ExplorerError, MethodNotAllowed
from core.rate_bucket import RateBucket


class QuestionIn(BaseModel):
    email: Optional[str] = None
    text: Optional[str] = None


def create_app(
    proxy: Optional[RateLimitedProxy] = None,
    question_client: Optional[httpx.AsyncClient] = None,
    retry: RetryPolicy = RetryPolicy(),
) -> FastAPI:
    """
    Build the API. The proxy (and with it the rate bucket) lives as long as the app;
    pass one in to share or stub the upstream.
    """
    app = FastAPI(title="Station Explorer API")
    app.state.proxy = proxy or RateLimitedProxy(RateBucket(RATE_LIMIT_CAPACITY, RATE_LIMIT_PER_MINUTE))
    app.state.question_client = question_client
    app.state.retry = retry

    @app.exception_handler(ExplorerError)
    async def explorer_error_handler(request: Request, exc: ExplorerError):
        return JSONResponse(exc.to_payload(), status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            return JSONResponse(MethodNotAllowed().to_payload(), status_code=405)
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
        return JSONResponse({"error": "Invalid request body"}, status_code=400)

    @app.get("/api/proxy")
    async def proxy_endpoint(request: Request, path: Optional[str] = None):
        """Rate-limited passthrough to the upstream API."""
        response = await request.app.state.proxy.proxy(path)
        return JSONResponse(response.body, status_code=response.status, headers=response.headers)

    @app.post("/api/question")
    async def question_endpoint(request: Request, question: QuestionIn):
        status, body = await forward_question(
            question.email,
            question.text,
            client=request.app.state.question_client,
        )
        return JSONResponse(body, status_code=status)

    @app.get("/api/stations")
    async def stations_endpoint(request: Request):
        stations = await fetch_stations(request.app.state.proxy)
        return [s.to_dict() for s in stations]

    @app.get("/api/observations/{station_id}")
    async def observations_endpoint(request: Request, station_id: str):
        """Normalized temperature/wind series for one station. Always 200 with a state."""
        result = await load_observations(request.app.state.proxy, station_id, retry=request.app.state.retry)
        return result.to_dict()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
