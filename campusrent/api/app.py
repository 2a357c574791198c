"""FastAPI application: batch trigger, interactive search and health.

Routes
------
``GET|POST /api/cron/process-saved-searches``
    Runs one notification batch.  The caller must send
    ``Authorization: Bearer <CRON_SECRET>``; the header is compared in
    constant time.  Responds 401 ``Unauthorized`` on a wrong or missing
    header, 200 with a JSON batch summary on success, and 500
    ``Internal Server Error`` on any failure, including an unset secret.

``GET /api/properties``
    Interactive catalog search through the Filter Engine.

``GET /api/properties/{property_id}/similar``
    Listings resembling one property (same type and bedrooms, price ±20%).

``GET /health``
    Liveness check.

One SQLite connection is opened in the lifespan handler and shared by every
request; :mod:`aiosqlite` serialises access to it.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from campusrent.core import events
from campusrent.core.criteria import FilterSpec
from campusrent.core.exceptions import CampusRentError, RecordNotFoundError
from campusrent.core.run_context import RunContext
from campusrent.core.settings import Settings
from campusrent.filters.engine import filter_properties, similar_properties
from campusrent.notifiers.notifier import MailTransport
from campusrent.orchestrator.runner import run_once
from campusrent.storage.database import open_db
from campusrent.storage.repository import PropertyRepository

__all__ = ["create_app", "TRIGGER_PATH"]

logger = logging.getLogger(__name__)

TRIGGER_PATH = "/api/cron/process-saved-searches"


def _split_csv(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    return items or None


def _authorized(header: str | None, secret: str) -> bool:
    expected = f"Bearer {secret}".encode()
    return secrets.compare_digest((header or "").encode(), expected)


def create_app(
    settings: Settings | None = None,
    *,
    mailer: MailTransport | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration; loaded from the environment when ``None``.
        mailer: Transport override passed through to the batch.

    Returns:
        A ready-to-serve :class:`fastapi.FastAPI` instance.
    """
    if settings is None:
        settings = Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.conn = await open_db(settings.database_path_resolved)
        logger.info("API ready (dry_run=%s)", settings.dry_run)
        try:
            yield
        finally:
            await app.state.conn.close()
            logger.debug("Database connection closed.")

    app = FastAPI(title="Campusrent", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    def _conn(request: Request) -> aiosqlite.Connection:
        return request.app.state.conn

    # ------------------------------------------------------------------
    # Batch trigger
    # ------------------------------------------------------------------

    @app.api_route(TRIGGER_PATH, methods=["GET", "POST"], response_model=None)
    async def process_saved_searches(request: Request) -> JSONResponse | PlainTextResponse:
        """Run one notification batch for an authorised scheduler."""
        if not settings.cron_configured:
            logger.error("CRON_SECRET is not configured; refusing to run the batch")
            return PlainTextResponse("Internal Server Error", status_code=500)

        if not _authorized(request.headers.get("authorization"), settings.cron_secret):
            logger.warning(
                "Rejected batch trigger from %s",
                request.client.host if request.client else "unknown",
                extra={"event": events.TRIGGER_UNAUTHORIZED},
            )
            return PlainTextResponse("Unauthorized", status_code=401)

        try:
            stats = await run_once(
                RunContext(dry_run=settings.dry_run),
                settings,
                conn=_conn(request),
                mailer=mailer,
            )
        except CampusRentError as exc:
            logger.error("Batch failed: %s", exc)
            return PlainTextResponse("Internal Server Error", status_code=500)
        except Exception as exc:  # noqa: BLE001
            logger.critical("Unexpected batch failure: %s", exc, exc_info=True)
            return PlainTextResponse("Internal Server Error", status_code=500)

        return JSONResponse({"status": "success", **stats.as_dict()})

    # ------------------------------------------------------------------
    # Catalog search
    # ------------------------------------------------------------------

    @app.get("/api/properties")
    async def search_properties(
        request: Request,
        q: str | None = Query(None),
        min_price: float | None = Query(None, alias="minPrice"),
        max_price: float | None = Query(None, alias="maxPrice"),
        bedrooms: int | None = Query(None),
        bathrooms: int | None = Query(None),
        property_type: str | None = Query(None, alias="type"),
        distance: float | None = Query(None),
        amenities: str | None = Query(None),
        exclude: str | None = Query(None),
    ) -> dict[str, Any]:
        """Filter the active catalog, newest first."""
        spec = FilterSpec(
            search_query=q,
            price_min=min_price,
            price_max=max_price,
            bedrooms=bedrooms,
            bathrooms=bathrooms,
            property_type=property_type or None,
            max_distance=distance,
            amenities=_split_csv(amenities),
            exclude_ids=_split_csv(exclude),
        )
        catalog = await PropertyRepository(_conn(request)).list_active()
        results = filter_properties(catalog, spec)
        return {
            "count": len(results),
            "properties": [prop.model_dump(mode="json") for prop in results],
        }

    @app.get("/api/properties/{property_id}/similar")
    async def get_similar_properties(
        request: Request,
        property_id: str,
        limit: int = Query(3, ge=0, le=50),
    ) -> dict[str, Any]:
        """Return listings similar to *property_id*."""
        repo = PropertyRepository(_conn(request))
        try:
            reference = await repo.get(property_id)
        except RecordNotFoundError as exc:
            raise HTTPException(status_code=404, detail="Property not found") from exc
        results = similar_properties(await repo.list_active(), reference, limit=limit)
        return {
            "count": len(results),
            "properties": [prop.model_dump(mode="json") for prop in results],
        }

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "mode": RunContext(dry_run=settings.dry_run).mode_label}

    return app
