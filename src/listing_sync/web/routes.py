"""JSON routes exposing the engine state and the admin commands."""

from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from listing_sync.engine import SyncEngine
from listing_sync.logging import get_logger
from listing_sync.models import SeriesRange, SortKey

logger = get_logger(__name__)

router = APIRouter()


class FilterRequest(BaseModel):
    text: str = ""
    status: str | None = None


def _get_engine(request: Request) -> SyncEngine:
    return request.app.state.engine  # type: ignore[no-any-return]


@router.get("/health")
async def health_check() -> JSONResponse:
    return JSONResponse({"status": "ok"})


@router.get("/api/state")
async def get_state(request: Request) -> JSONResponse:
    """Everything the listings page renders: rows, stats, notices, series."""
    snapshot = _get_engine(request).snapshot()
    return JSONResponse(snapshot.model_dump(mode="json"))


@router.get("/api/series")
async def get_series(
    request: Request,
    series_range: Annotated[SeriesRange | None, Query(alias="range")] = None,
) -> JSONResponse:
    """Chart points for the ``range`` query parameter (defaults to the selected range)."""
    points = _get_engine(request).series(series_range)
    return JSONResponse([p.model_dump(mode="json") for p in points])


@router.post("/api/sort/{key}")
async def change_sort(request: Request, key: SortKey) -> JSONResponse:
    state = _get_engine(request).change_sort(key)
    return JSONResponse({"key": state.key, "direction": state.direction})


@router.post("/api/filter")
async def change_filter(request: Request, body: FilterRequest) -> JSONResponse:
    query = _get_engine(request).change_filter(body.text, body.status)
    return JSONResponse(query.model_dump(mode="json"))


@router.post("/api/range/{series_range}")
async def change_range(request: Request, series_range: SeriesRange) -> JSONResponse:
    selected = _get_engine(request).change_range(series_range)
    return JSONResponse({"range": selected})


@router.post("/api/refresh")
async def force_refresh(request: Request) -> JSONResponse:
    """Run a poll cycle now. Ignored if one is already in flight."""
    scheduled = _get_engine(request).force_refresh()
    return JSONResponse({"scheduled": scheduled}, status_code=202)


@router.delete("/api/listings/{listing_id}")
async def delete_listing(request: Request, listing_id: str) -> JSONResponse:
    """Delete a listing after the admin confirmed it."""
    deleted = await _get_engine(request).delete_listing(listing_id)
    if not deleted:
        return JSONResponse({"deleted": False, "listing_id": listing_id}, status_code=502)
    logger.info("listing_deleted", listing_id=listing_id)
    return JSONResponse({"deleted": True, "listing_id": listing_id})
