"""
Sizing calculator: log space and storage recommendation for RDS for Db2.

Database size comes from the first estimator that yields a positive byte count:
GET_DBSIZE_INFO output, allocated tablespace pages, then used tablespace pages.
"""
import logging
import re
from typing import Callable, Optional, Sequence

from core.context import CheckContext
from core.errors import ParseError, QueryConnectionError
from core.results import EmptyResult, parse_int
from models.precheck import CheckOutcome, CheckStatus, SizingEstimate

logger = logging.getLogger(__name__)

KB_PER_MB = 1024
KB_PER_GB = 1024 * 1024
KB_PER_TB = 1024 * 1024 * 1024

MIN_STORAGE_KB = 20 * KB_PER_GB          # 20 GB service minimum
MAX_STORAGE_KB = 67_108_864_000          # ~64 TB service maximum
GROWTH_PCT = 25

MIN_DB_BYTES = 1024
DB_SIZE_FLOOR_BYTES = 1_048_576          # 1 MB
MAX_DB_BYTES = 109_951_162_777_600       # 100 TB
LARGE_NUMBER = 1_000_000

DBSIZE_PARAMETERS = ("SNAPSHOTTIMESTAMP", "DATABASESIZE", "DATABASECAPACITY", "REFRESH_WINDOW")

Estimator = Callable[[CheckContext], Optional[int]]


def format_size(size_kb: int) -> str:
    if size_kb < KB_PER_MB:
        return f"{size_kb} KB"
    if size_kb < KB_PER_GB:
        return f"{size_kb // KB_PER_MB} MB"
    if size_kb < KB_PER_TB:
        return f"{size_kb // KB_PER_GB} GB"
    return f"{size_kb // KB_PER_TB} TB"


def calculate_log_space(logfilsiz: int, logprimary: int, logsecond: int) -> tuple[int, bool]:
    """Returns (log_space_kb, primary_only). LOGFILSIZ is in 4 KB pages."""
    if logsecond == -1:
        return logfilsiz * logprimary * 4, True
    return (logfilsiz * logprimary + logfilsiz * logsecond) * 4, False


# ── Estimators ────────────────────────────────────────────────────────────────

def parse_dbsize_output(text: str) -> Optional[int]:
    """Pull DATABASESIZE out of GET_DBSIZE_INFO output."""
    lines = text.splitlines()
    for i, line in enumerate(lines[:-1]):
        if re.search(r"Parameter Name\s*:\s*DATABASESIZE", line) and "Parameter Value" in lines[i + 1]:
            digits = re.sub(r"[^0-9]", "", lines[i + 1].split(":", 1)[-1])
            if digits and int(digits) > 0:
                return int(digits)

    m = re.search(r"DATABASESIZE\W+(\d+)", text)
    if m and int(m.group(1)) > 0:
        return int(m.group(1))

    for number in re.findall(r"\d+", text):
        if int(number) > LARGE_NUMBER:
            return int(number)
    return None


def _scalar(ctx: CheckContext, statement: str) -> Optional[int]:
    try:
        result = ctx.query(statement)
        if isinstance(result, EmptyResult):
            return None
        return parse_int(result.first_cell())
    except (QueryConnectionError, ParseError) as e:
        logger.debug("Size estimate failed for %s: %s", ctx.database, e)
        return None


def render_out_parameters(names: Sequence[str], values: Sequence[str]) -> str:
    """Lay out procedure OUT values the way the command line processor prints them."""
    lines = ["  Value of output parameters", "  --------------------------"]
    for name, value in zip(names, values):
        lines += [f"  Parameter Name  : {name}", f"  Parameter Value : {value}", ""]
    return "\n".join(lines)


def estimate_from_dbsize_procedure(ctx: CheckContext) -> Optional[int]:
    try:
        result = ctx.call("SYSPROC.GET_DBSIZE_INFO", (None, None, None, -1))
    except QueryConnectionError as e:
        logger.debug("GET_DBSIZE_INFO failed for %s: %s", ctx.database, e)
        return None
    if isinstance(result, EmptyResult):
        return None
    return parse_dbsize_output(render_out_parameters(DBSIZE_PARAMETERS, result.rows[0]))


def estimate_from_allocated_pages(ctx: CheckContext) -> Optional[int]:
    return _scalar(
        ctx,
        "SELECT SUM(TBSP_TOTAL_PAGES * TBSP_PAGE_SIZE) FROM TABLE(MON_GET_TABLESPACE('', -1)) "
        "WHERE TBSP_CONTENT_TYPE NOT IN ('SYSTEMP', 'USRTEMP')",
    )


def estimate_from_used_pages(ctx: CheckContext) -> Optional[int]:
    return _scalar(
        ctx,
        "SELECT SUM(TBSP_USED_PAGES * TBSP_PAGE_SIZE) FROM TABLE(MON_GET_TABLESPACE('', -1))",
    )


ESTIMATORS: tuple[Estimator, ...] = (
    estimate_from_dbsize_procedure,
    estimate_from_allocated_pages,
    estimate_from_used_pages,
)


def first_success(estimators: Sequence[Estimator], ctx: CheckContext) -> Optional[int]:
    for estimator in estimators:
        value = estimator(ctx)
        if value is not None and value > 0:
            logger.info("Database size for %s from %s: %d bytes", ctx.database, estimator.__name__, value)
            return value
        logger.info("Size estimate %s gave no usable value for %s", estimator.__name__, ctx.database)
    return None


# ── Recommendation ────────────────────────────────────────────────────────────

def storage_tier(recommended_kb: int) -> str:
    if recommended_kb < MIN_STORAGE_KB:
        return "20 GB (minimum)"
    if recommended_kb < MAX_STORAGE_KB:
        gb = -(-recommended_kb // KB_PER_GB) + 1
        return f"{gb} GB"
    return "exceeds maximum (64 TB), consider data archiving or partitioning"


def compute_sizing(log_space_kb: int, db_size_bytes: int) -> SizingEstimate:
    db_size_kb = db_size_bytes // 1024
    base_kb = db_size_kb + log_space_kb
    growth_kb = base_kb * GROWTH_PCT // 100
    recommended_kb = base_kb + growth_kb
    return SizingEstimate(
        log_space_kb=log_space_kb,
        db_size_kb=db_size_kb,
        base_kb=base_kb,
        growth_kb=growth_kb,
        recommended_kb=recommended_kb,
        tier=storage_tier(recommended_kb),
    )


def sizing_outcomes(
    ctx: CheckContext,
    log_space_kb: int,
    estimators: Sequence[Estimator] = ESTIMATORS,
) -> tuple[SizingEstimate, list[CheckOutcome]]:
    outcomes: list[CheckOutcome] = []

    def info(name: str, detail: str, rec: str) -> None:
        outcomes.append(CheckOutcome(name=name, status=CheckStatus.INFO, detail=detail, recommendation=rec))

    db_size_bytes = first_success(estimators, ctx)

    if db_size_bytes is None:
        info("RDS_SIZING_RECOMMENDATION", "Unable to determine database size using available methods",
             "Consider manual database size calculation")
        info("RDS_SIZING_MANUAL", "Manual calculation: Run 'db2 \"CALL GET_DBSIZE_INFO(?, ?, ?, -1)\"' and check output",
             "Use the database size value for RDS planning")
        info("RDS_SIZING_FALLBACK", f"Log space only: {format_size(log_space_kb)}, Minimum RDS: 20 GB",
             "Add database size to this for total requirement")
        return SizingEstimate(log_space_kb=log_space_kb, tier="20 GB (minimum)"), outcomes

    if db_size_bytes < MIN_DB_BYTES:
        info("RDS_SIZING_RECOMMENDATION", f"Database appears very small: {format_size(db_size_bytes // 1024)}",
             "Using minimum RDS storage recommendation")
        db_size_bytes = DB_SIZE_FLOOR_BYTES
    elif db_size_bytes > MAX_DB_BYTES:
        info("RDS_SIZING_RECOMMENDATION", f"Database size appears unrealistic: {format_size(db_size_bytes // 1024)}",
             "Please verify database size manually")
        info("RDS_SIZING_MANUAL", "Try: db2 \"SELECT SUM(TBSP_USED_PAGES * TBSP_PAGE_SIZE) FROM TABLE(MON_GET_TABLESPACE('', -1))\"",
             "Alternative database size calculation")
        return SizingEstimate(log_space_kb=log_space_kb, tier="manual calculation required"), outcomes

    est = compute_sizing(log_space_kb, db_size_bytes)
    info("RDS_SIZING_RECOMMENDATION",
         f"Database size: {format_size(est.db_size_kb)}, Log space: {format_size(log_space_kb)}",
         "RDS for Db2 sizing calculation")
    info("RDS_SIZING_BASE", f"Base storage requirement: {format_size(est.base_kb)} (DB + Logs)",
         "Minimum RDS storage needed")
    info("RDS_SIZING_GROWTH", f"Recommended with {GROWTH_PCT}% growth: {format_size(est.recommended_kb)}",
         "Recommended RDS storage allocation")

    if est.recommended_kb < MIN_STORAGE_KB:
        info("RDS_SIZING_TIER", f"Recommended RDS storage: {est.tier}", "RDS for Db2 minimum storage is 20 GB")
    elif est.recommended_kb < MAX_STORAGE_KB:
        info("RDS_SIZING_TIER", f"Recommended RDS storage: {est.tier}", f"Based on current usage + {GROWTH_PCT}% growth")
    else:
        info("RDS_SIZING_TIER", "Database size exceeds RDS for Db2 maximum (64 TB)",
             "Consider data archiving or partitioning")
    return est, outcomes
