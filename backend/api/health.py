"""GET /api/health — driver and command line processor check."""
import logging
import shutil
from fastapi import APIRouter

from config import settings
from core.errors import FatalEnvironmentError
from core.gateway import QueryGateway
from models.precheck import ConnectionMode, Target

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    driver = _check_driver()
    clp = _check_clp()
    # The command line processor only matters for local discovery
    clp_ok = settings.remote_mode or clp["status"] == "up"
    overall = "ok" if driver["status"] == "up" and clp_ok else "degraded"
    return {
        "status": overall,
        "mode": "remote" if settings.remote_mode else "local",
        "services": {
            "driver":  driver,
            "db2_clp": clp,
        },
    }


def _check_driver() -> dict:
    probe = Target(database=settings.DBNAME or "SAMPLE", mode=ConnectionMode.LOCAL)
    try:
        QueryGateway(settings.DB2_DIALECT, settings.TARGET_URL).check_driver(probe)
        return {"status": "up", "dialect": settings.DB2_DIALECT}
    except FatalEnvironmentError as e:
        logger.warning("Driver check failed: %s", e)
        return {"status": "down", "error": str(e)}


def _check_clp() -> dict:
    path = shutil.which("db2")
    if path:
        return {"status": "up", "path": path}
    return {"status": "down", "error": "db2 command not found"}
