"""FastAPI application for wearable connections, sync and data reads."""

import logging
import os
from datetime import date
from typing import Annotated, Any
from urllib.parse import urlencode

from dateutil import parser as date_parser
from fastapi import FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from clockwork_connector import (
    ConfigurationError,
    ConnectorError,
    InvalidStateError,
    ManualEntry,
    UnsupportedProviderError,
    WearableService,
)

logger = logging.getLogger(__name__)

UserId = Annotated[str, Header(alias="X-User-Id", description="Authenticated user id")]


def _parse_day(value: str | None, name: str) -> date | None:
    if not value:
        return None
    try:
        return date_parser.isoparse(value).date()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from e


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"success": False, "error": message})


def create_app(service: WearableService | None = None) -> FastAPI:
    """
    Build the API.

    Args:
        service: Pre-built service (tests). Built from the environment on first use otherwise.
    """
    app = FastAPI(
        title="Clockwork Wearables Service",
        description="OAuth connections, sync and data for wearable providers",
        version="0.1.0",
    )
    app.state.service = service

    def get_service() -> WearableService:
        if app.state.service is None:
            app.state.service = WearableService.from_settings()
        return app.state.service

    # ============================================================================
    # Health Check
    # ============================================================================

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        """Health check endpoint for monitoring."""
        svc = get_service()
        return {
            "status": "healthy",
            "version": "0.1.0",
            "service": "clockwork-wearables",
            "local_mode": svc.settings.local_mode,
            "providers": {p["provider"]: p["configured"] for p in svc.provider_status()},
        }

    # ============================================================================
    # OAuth
    # ============================================================================

    @app.get("/authorize/{provider}")
    async def authorize(provider: str, user_id: UserId) -> dict[str, Any]:
        """Start an authorization and return the provider URL."""
        request = get_service().begin_authorization(user_id, provider)
        return {"success": True, "authUrl": request.auth_url, "provider": request.provider.value}

    @app.get("/callback/{provider}")
    async def oauth_callback(
        provider: str,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
    ) -> RedirectResponse:
        """Provider redirect target. Always redirects to the frontend."""
        svc = get_service()
        frontend = svc.settings.frontend_url.rstrip("/")

        def redirect(**params: str) -> RedirectResponse:
            return RedirectResponse(f"{frontend}/?{urlencode(params)}", status_code=302)

        if error:
            logger.info("Provider %s returned OAuth error: %s", provider, error)
            return redirect(error="oauth_error")
        if not code or not state:
            return redirect(error="invalid_state")

        try:
            connection = await svc.complete_authorization(provider, code, state)
        except InvalidStateError:
            return redirect(error="invalid_state")
        except ConnectorError as e:
            logger.warning("OAuth callback for %s failed: %s", provider, e.message)
            return redirect(error="auth_failed")

        return redirect(connected=connection.provider.value)

    @app.delete("/disconnect/{provider}")
    async def disconnect(provider: str, user_id: UserId) -> dict[str, Any]:
        removed = await get_service().disconnect(user_id, provider)
        return {"success": True, "provider": provider, "removed": removed}

    @app.get("/connections")
    async def connections(user_id: UserId) -> dict[str, Any]:
        items = [c.summary() for c in get_service().list_connections(user_id)]
        return {"success": True, "count": len(items), "connections": items}

    # ============================================================================
    # Sync and data
    # ============================================================================

    @app.post("/sync/{provider}")
    async def sync(provider: str, user_id: UserId, timeout: float | None = None) -> JSONResponse:
        svc = get_service()
        try:
            result = await svc.sync(user_id, provider, timeout=timeout)
        except UnsupportedProviderError as e:
            return _error(e.http_status, e.message)
        except ConfigurationError as e:
            return _error(501, e.message)

        headers = {}
        quota = svc.rate_limit_status(user_id, result.provider.value)
        if quota:
            headers["X-RateLimit-Limit"] = str(quota["max"])
            headers["X-RateLimit-Remaining"] = str(quota["remaining"])
        return JSONResponse(content=result.to_dict(), headers=headers)

    @app.get("/data/{user_id}")
    async def data(
        user_id: str,
        startDate: str | None = None,
        endDate: str | None = None,
        provider: str | None = None,
        days: Annotated[int | None, Query(ge=1, le=365)] = None,
    ) -> dict[str, Any]:
        records = get_service().get_records(
            user_id,
            start_date=_parse_day(startDate, "startDate"),
            end_date=_parse_day(endDate, "endDate"),
            provider=provider,
            days=days,
        )
        return {
            "success": True,
            "count": len(records),
            "data": [record.model_dump(mode="json") for record in records],
        }

    @app.get("/data/{user_id}/latest")
    async def latest(user_id: str, provider: str | None = None) -> dict[str, Any]:
        record = get_service().latest_record(user_id, provider)
        return {"success": True, "data": record.model_dump(mode="json") if record else None}

    @app.post("/user/{user_id}/manual")
    async def manual_entry(user_id: str, entry: ManualEntry) -> dict[str, Any]:
        """Store hand-entered metrics for one day (today when no date is given)."""
        record = get_service().manual_entry(user_id, entry.to_metrics(), day=entry.day)
        return {"success": True, "data": record.model_dump(mode="json")}

    @app.get("/insights/{user_id}")
    async def insights(user_id: str, days: Annotated[int, Query(ge=1, le=365)] = 7) -> dict[str, Any]:
        summary = get_service().insights(user_id, days=days)
        if summary is None:
            return {"success": True, "insights": None, "message": "No data available"}
        return {"success": True, "insights": summary}

    # Error handler
    @app.exception_handler(ConnectorError)
    async def connector_error_handler(request: Request, exc: ConnectorError) -> JSONResponse:
        """Render ConnectorError as {success: false, error}."""
        if exc.http_status >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        headers = {}
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            headers["Retry-After"] = str(retry_after)
        return JSONResponse(
            status_code=exc.http_status,
            content={"success": False, "error": exc.message, "code": exc.code},
            headers=headers,
        )

    return app


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
