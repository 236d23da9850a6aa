"""HTTP API: one query in, one JSON listing document out."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from marketlens import __version__
from marketlens.aggregation import error_document, result_to_document
from marketlens.config_loader import get_api_config, load_config
from marketlens.diagnostics import DiagnosticTrail
from marketlens.pipeline import InvalidRequestError, build_request, run_scrape


def _load_api_config():
    try:
        return load_config(os.getenv("MARKETLENS_CONFIG"))
    except FileNotFoundError:
        fallback = Path(__file__).resolve().parents[1] / "config.yaml"
        if fallback.exists():
            return load_config(str(fallback))
        logger.warning("No config.yaml found, running with built-in defaults")
        return {}


_config = _load_api_config()

app = FastAPI(title="MarketLens API", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_api_config(_config).get("cors_origins") or ["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _flag(value: Optional[str]) -> bool:
    return str(value or "0").strip() == "1"


@app.get("/health")
def health():
    return {"ok": True, "version": __version__}


@app.get("/scrape")
def scrape(
    amazon_url: Optional[str] = Query(default=None),
    flipkart_url: Optional[str] = Query(default=None),
    debug: Optional[str] = Query(default="0"),
    debug_shot: Optional[str] = Query(default="0"),
):
    trail = DiagnosticTrail(enabled=_flag(debug))
    try:
        request = build_request(
            amazon_url=amazon_url,
            flipkart_url=flipkart_url,
            debug=_flag(debug),
            debug_screenshot=_flag(debug_shot),
            config=_config,
            trail=trail,
        )
    except InvalidRequestError as e:
        return JSONResponse(status_code=400, content=error_document(str(e), e.debug))

    try:
        result = run_scrape(request, config=_config, trail=trail)
    except Exception as e:
        logger.exception("Scrape request failed")
        return JSONResponse(status_code=500, content=error_document(str(e)))

    return JSONResponse(status_code=200, content=result_to_document(result))
