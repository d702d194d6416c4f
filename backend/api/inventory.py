"""GET /api/inventory/{database} — inventory of the last precheck run."""
import json
import logging
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from api.precheck import get_cached_inventory
from config import settings
from core.inventory_export import (
    build_inventory_document, render_detail_text, render_summary_text, serialize_document,
)

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/inventory/{database}")
def get_inventory(
    database: str,
    format: str = Query("json", pattern="^(json|summary|detail)$"),
):
    catalog = get_cached_inventory(database)
    if catalog is None:
        raise HTTPException(
            status_code=404,
            detail=f"No inventory found for '{database}'. Run /api/precheck with inventory enabled first.",
        )

    if format == "summary":
        return PlainTextResponse(content=render_summary_text(catalog))
    if format == "detail":
        return PlainTextResponse(content=render_detail_text(catalog))
    document = build_inventory_document(catalog.database, [catalog])
    return json.loads(serialize_document(document, settings.INVENTORY_SERIALIZER))
