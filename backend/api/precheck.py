"""POST /api/precheck — validate one remote database or every local one."""
import logging
import time
from typing import Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from config import settings
from core.context import Gateway
from core.errors import FatalEnvironmentError
from core.gateway import QueryGateway
from core.orchestrator import ResolvedTargets, resolve_targets, run_precheck
from models.inventory import InventoryCatalog
from models.precheck import AggregateReport, ConnectionMode, Target

router = APIRouter()
logger = logging.getLogger(__name__)

# In-memory inventory cache: database → latest InventoryCatalog
_inventory_cache: dict[str, InventoryCatalog] = {}


class PrecheckRequest(BaseModel):
    database: Optional[str] = None      # with user + password = remote mode
    user: Optional[str] = None
    password: Optional[str] = Field(None, repr=False)
    host: Optional[str] = None
    port: Optional[int] = None
    inventory: Optional[bool] = None    # None = use INVENTORY setting


class PrecheckResponse(BaseModel):
    duration_seconds: float
    exit_code: int
    report: AggregateReport


def get_gateway() -> Gateway:
    return QueryGateway(settings.DB2_DIALECT, settings.TARGET_URL)


def _resolve(req: PrecheckRequest) -> ResolvedTargets:
    if req.database and req.user and req.password:
        target = Target(
            database=req.database,
            mode=ConnectionMode.REMOTE,
            user=req.user,
            password=req.password,
            host=req.host or settings.DB2_HOST or None,
            port=req.port or settings.DB2_PORT,
        )
        return ResolvedTargets(mode=ConnectionMode.REMOTE, targets=[target])
    resolved = resolve_targets(settings)
    if req.database:
        resolved.targets = [t for t in resolved.targets if t.database.upper() == req.database.upper()]
        if not resolved.targets:
            raise HTTPException(404, detail=f"Database '{req.database}' is not catalogued locally.")
    return resolved


@router.post("/precheck", response_model=PrecheckResponse)
def precheck(req: PrecheckRequest):
    run_settings = settings
    if req.inventory is not None:
        run_settings = settings.model_copy(update={"INVENTORY": req.inventory})

    t0 = time.time()
    try:
        report = run_precheck(run_settings, gateway=get_gateway(), resolved=_resolve(req))
    except FatalEnvironmentError as e:
        raise HTTPException(503, detail=str(e))

    for run in report.runs:
        if run.inventory is not None:
            _inventory_cache[run.target.database.upper()] = run.inventory
    return PrecheckResponse(
        duration_seconds=round(time.time() - t0, 2),
        exit_code=report.exit_code,
        report=report,
    )


def get_cached_inventory(database: str) -> Optional[InventoryCatalog]:
    return _inventory_cache.get(database.upper())
