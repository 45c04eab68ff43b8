"""
Auth HTTP server.

Steam OpenID login initiation and callback, logout and session introspection.
Everything else in the product (inventory, goals, catalogue proxying) talks to
these endpoints or to the backend; none of it lives here.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from invtracker.auth.util import normalize_hostname

logger = logging.getLogger(__name__)

app = FastAPI(title="CS Inventory Tracker auth")


def _request_hostname(request: Request) -> Optional[str]:
    return normalize_hostname(request.headers.get("host")) or request.url.hostname


def _apply_cookies(resp, cookies) -> None:
    for kw in cookies:
        resp.set_cookie(**kw)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming HTTP requests."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        from invtracker.auth.deps import authenticate_request

        # Best-effort: attach user identity for handlers that want it.
        user = authenticate_request(request)
        if user is not None:
            request.state.user = user

        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


@app.get("/api/auth/steam")
async def auth_login_steam(return_url: str = Query("/", alias="returnUrl")):
    """Initiate Steam OpenID login: redirect the browser to the provider."""
    from invtracker.auth.config import load_auth_config
    from invtracker.auth.openid import build_login_url

    cfg = load_auth_config()
    url = build_login_url(cfg, return_url)

    resp = RedirectResponse(url=url, status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.get("/api/auth/steam/callback")
def auth_callback_steam(request: Request, return_url: str = Query("/", alias="returnUrl")):
    """
    Handle the provider redirect back.

    Sync handler: provider re-validation is a blocking round trip and runs in the
    threadpool; the response is only produced after it completes.
    """
    from invtracker.auth.config import load_auth_config
    from invtracker.auth.lifecycle import complete_login, error_redirect
    from invtracker.auth.openid import OpenIDVerificationError, signed_return_path, verify_callback

    cfg = load_auth_config()
    params = dict(request.query_params)

    try:
        steam_id = verify_callback(cfg, params)
    except OpenIDVerificationError as e:
        logger.warning("Steam login rejected (%s): %s", e.reason, str(e))
        resp = RedirectResponse(url=error_redirect(return_url, e.reason), status_code=302)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    resp = RedirectResponse(url=signed_return_path(params), status_code=302)
    resp.headers["Cache-Control"] = "no-store"
    _apply_cookies(resp, complete_login(cfg, steam_id, _request_hostname(request)))
    return resp


@app.post("/api/auth/logout")
async def auth_logout(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    from invtracker.auth.config import load_auth_config
    from invtracker.auth.lifecycle import notify_backend_logout, perform_logout

    cfg = load_auth_config()
    resp = JSONResponse(content={"ok": True, "message": "Logged out successfully"})
    resp.headers["Cache-Control"] = "no-store"
    _apply_cookies(resp, perform_logout(cfg, _request_hostname(request)))

    # Runs after the response is sent; its outcome cannot affect the cleared cookies.
    background_tasks.add_task(notify_backend_logout, cfg, request.headers.get("cookie"))
    return resp


@app.get("/api/auth/me")
async def auth_me(request: Request) -> Dict[str, Any]:
    user = getattr(request.state, "user", None)
    if not user:
        # IMPORTANT: no `WWW-Authenticate`; browsers would show a credentials modal.
        raise HTTPException(status_code=401, detail="Unauthorized")
    return {"ok": True, "user": {"steamId": user.steam_id}}


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    # Configure logging for the application
    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting auth server on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
