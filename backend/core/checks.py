"""
Migration readiness checks.

Every check takes a CheckContext and returns its outcomes. Checks register
themselves in CHECK_REGISTRY in definition order, which is the order they run
and appear in the report. A statement that cannot be executed becomes a FAIL
"unable to query" outcome, a result that cannot be parsed becomes a FAIL
"invalid result" outcome; neither stops the remaining checks.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from core.context import CheckContext
from core.errors import ParseError, QueryConnectionError
from core.results import NO_ROWS, EmptyResult, parse_count, parse_int
from core.sizing import calculate_log_space, format_size, sizing_outcomes
from models.precheck import CheckOutcome, CheckStatus

logger = logging.getLogger(__name__)

CONNECTIVITY_REC = "Check database connectivity and permissions"
STATUS_REC = "Check database status and connectivity"

NON_ARCHIVED_LOG_LIMIT = 254
ARCHIVED_LOG_LIMIT = 4096

CheckFunc = Callable[[CheckContext], list[CheckOutcome]]


@dataclass(frozen=True)
class CheckSpec:
    name: str
    func: CheckFunc


CHECK_REGISTRY: list[CheckSpec] = []


def _outcome(name: str, status: CheckStatus, detail: str, rec: Optional[str] = None) -> CheckOutcome:
    return CheckOutcome(name=name, status=status, detail=detail, recommendation=rec)


def passed(name: str, detail: str, rec: Optional[str] = None) -> CheckOutcome:
    return _outcome(name, CheckStatus.PASS, detail, rec)


def failed(name: str, detail: str, rec: str) -> CheckOutcome:
    return _outcome(name, CheckStatus.FAIL, detail, rec)


def warning(name: str, detail: str, rec: str) -> CheckOutcome:
    return _outcome(name, CheckStatus.WARNING, detail, rec)


def info(name: str, detail: str, rec: str) -> CheckOutcome:
    return _outcome(name, CheckStatus.INFO, detail, rec)


def check(name: str, subject: str):
    """Register a check; map query and parse failures to FAIL outcomes."""
    def decorator(func: CheckFunc) -> CheckFunc:
        @functools.wraps(func)
        def wrapper(ctx: CheckContext) -> list[CheckOutcome]:
            try:
                return func(ctx)
            except QueryConnectionError:
                return [failed(name, f"Unable to query {subject} for {ctx.database}", CONNECTIVITY_REC)]
            except ParseError as e:
                return [failed(name, f"Invalid result from {subject} query: {e.raw}", STATUS_REC)]
        CHECK_REGISTRY.append(CheckSpec(name, wrapper))
        return wrapper
    return decorator


def _count(ctx: CheckContext, statement: str) -> int:
    return parse_count(ctx.query(statement)).value


# ── Checks (registration order) ──────────────────────────────────────────────

@check("DATABASE_VERSION", "database version")
def check_database_version(ctx: CheckContext) -> list[CheckOutcome]:
    try:
        result = ctx.query("SELECT VERSIONNUMBER FROM SYSIBM.SYSVERSIONS ORDER BY VERSION_TIMESTAMP DESC")
    except QueryConnectionError:
        result = EmptyResult()
    if isinstance(result, EmptyResult) or not result.first_cell():
        return [info("DATABASE_VERSION", "Unable to retrieve database version from SYSIBM.SYSVERSIONS",
                     "Check database connectivity and system catalog access")]
    return [info("DATABASE_VERSION", f"Database version: {result.first_cell()}",
                 "Informational - verify compatibility with RDS for Db2")]


@check("DB2_UPDATE_LEVEL", "update level")
def check_update_level(ctx: CheckContext) -> list[CheckOutcome]:
    if not ctx.remote and ctx.which("db2updv115") is None:
        return [info("DB2_UPDATE_LEVEL", "db2updv115 command not found",
                     "Ensure the Db2 v11.5 update utility is available")]
    return [passed("DB2_UPDATE_LEVEL",
                   f'Make sure that you run db2updv115 -d "{ctx.database}" after applying a fixpack '
                   "and before migrating to RDS for Db2")]


@check("INDOUBT_TRANSACTIONS", "in-doubt transactions")
def check_indoubt_transactions(ctx: CheckContext) -> list[CheckOutcome]:
    n = _count(ctx, "SELECT NUM_INDOUBT_TRANS FROM TABLE(MON_GET_TRANSACTION_LOG(NULL))")
    if n == 0:
        return [passed("INDOUBT_TRANSACTIONS", f"No in-doubt transactions found ({n})")]
    return [failed("INDOUBT_TRANSACTIONS", f"Found {n} in-doubt transaction(s)",
                   'Resolve in-doubt transactions before migration: run "db2 list indoubt transactions '
                   'with prompting" and follow the prompts')]


@check("INVALID_OBJECTS", "invalid objects")
def check_invalid_objects(ctx: CheckContext) -> list[CheckOutcome]:
    n = _count(ctx, "SELECT COUNT(*) FROM SYSCAT.INVALIDOBJECTS")
    if n == 0:
        return [passed("INVALID_OBJECTS", "No invalid objects found")]
    return [failed("INVALID_OBJECTS", f"Found {n} invalid object(s)",
                   'Run: db2 "call SYSPROC.ADMIN_REVALIDATE_DB_OBJECTS()" (may need multiple runs)')]


@check("TABLESPACE_STATE", "tablespace states")
def check_tablespace_state(ctx: CheckContext) -> list[CheckOutcome]:
    result = ctx.query(
        "SELECT TBSP_ID, TBSP_NAME, TBSP_STATE FROM TABLE(MON_GET_TABLESPACE('', -1))",
        with_headers=True,
    )
    if isinstance(result, EmptyResult):
        raise ParseError(NO_ROWS, "tablespace rows")
    names = result.column("TBSP_NAME")
    states = result.column("TBSP_STATE")
    abnormal = [f"{n} ({s})" for n, s in zip(names, states) if s.upper() != "NORMAL"]
    if not abnormal:
        return [passed("TABLESPACE_STATE", "All tablespaces are in NORMAL state")]
    logger.debug("Tablespace details for %s: %s", ctx.database, result.as_text())
    return [failed("TABLESPACE_STATE",
                   f"Found {len(abnormal)} tablespace(s) not in NORMAL state: {', '.join(abnormal)}",
                   "Ensure all tablespaces are in NORMAL state before migration")]


@check("NON_FENCED_ROUTINES", "non-fenced routines")
def check_non_fenced_routines(ctx: CheckContext) -> list[CheckOutcome]:
    where = f"FENCED = 'N' AND ROUTINESCHEMA NOT IN ({ctx.policy.excluded_schema_list_sql()})"
    n = _count(ctx, f"SELECT COUNT(*) FROM SYSCAT.ROUTINES WHERE {where}")
    if n == 0:
        return [passed("NON_FENCED_ROUTINES", "No non-fenced routines found")]
    try:
        details = ctx.query(
            "SELECT ROUTINESCHEMA, ROUTINEMODULENAME, ROUTINENAME, FENCED, ROUTINETYPE, OWNER, SPECIFICNAME "
            f"FROM SYSCAT.ROUTINES WHERE {where}",
            with_headers=True,
        )
        logger.debug("Non-fenced routines in %s:\n%s", ctx.database, details.as_text())
    except QueryConnectionError as e:
        logger.debug("Non-fenced routine details unavailable for %s: %s", ctx.database, e)
    return [failed("NON_FENCED_ROUTINES", f"Found {n} non-fenced routine(s)",
                   "Review and fence non-system routines before migration")]


@check("JAVA_PROCEDURES", "Java stored procedures")
def check_java_procedures(ctx: CheckContext) -> list[CheckOutcome]:
    try:
        result = ctx.query("SELECT JARSCHEMA, JAR_ID, CLASS FROM SYSIBM.SYSJARCONTENTS")
    except QueryConnectionError:
        return [passed("JAVA_PROCEDURES", f"Did not find any Java stored procedures for {ctx.database}")]
    if isinstance(result, EmptyResult):
        return [passed("JAVA_PROCEDURES", "No Java stored procedures found")]
    logger.debug("Java stored procedure details for %s:\n%s", ctx.database, result.as_text())
    return [passed("JAVA_PROCEDURES",
                   f"Java stored procedures found in database ({len(result.rows)} JAR class(es))",
                   "Copy all JAR files from ~/sqllib/function/jar to a Db2 client that can reach RDS for Db2, "
                   "then run call sqlj.install_jar('jarfilepath','JAR_ID') for each of them")]


@check("AUTOSTORAGE", "AutoStorage configuration")
def check_autostorage(ctx: CheckContext) -> list[CheckOutcome]:
    n = _count(ctx, "SELECT COUNT(*) FROM TABLE(ADMIN_GET_STORAGE_PATHS('', -1))")
    if n >= 1:
        return [passed("AUTOSTORAGE", f"AutoStorage is configured ({n} storage path(s) found)")]
    return [failed("AUTOSTORAGE", "No storage paths found for AutoStorage",
                   "Create storage group: db2 \"CREATE STOGROUP <name> ON '<PathName>'\"")]


# ── Database configuration ───────────────────────────────────────────────────

# (outcome name, label, DBCFG parameter, remediation)
PENDING_FLAGS = (
    ("DB_CONFIG_UPDATE_PENDING", "Update to database level pending", "update_pending",
     "Complete pending database updates"),
    ("DB_CONFIG_BACKUP_PENDING", "Backup pending", "backup_pending",
     "Complete pending backup operations"),
    ("DB_CONFIG_ROLLFORWARD_PENDING", "Rollforward pending", "rollfwd_pending",
     "Complete pending rollforward operations"),
    ("DB_CONFIG_RESTORE_PENDING", "Restore pending", "restore_pending",
     "Complete pending restore operations"),
    ("DB_CONFIG_UPGRADE_PENDING", "Upgrade pending", "upgrade_pending",
     "Complete pending upgrade operations"),
)

# (outcome name, label, DBCFG parameter, default)
INFO_PARAMETERS = (
    ("DB_CONFIG_TERRITORY", "Database territory", "territory", "Default is US"),
    ("DB_CONFIG_CODEPAGE", "Database code page", "codepage", "Default is 1208"),
    ("DB_CONFIG_CODESET", "Database code set", "codeset", "Default is UTF-8"),
    ("DB_CONFIG_COUNTRY", "Database country", "country", "Default is 1"),
    ("DB_CONFIG_COLLATING", "Database collating sequence", "collate_info", "Default is IDENTITY"),
    ("DB_CONFIG_PAGESIZE", "Database page size", "pagesize", "Informational"),
)


def read_db_config(ctx: CheckContext) -> dict[str, str]:
    """NAME -> VALUE from SYSIBMADM.DBCFG; AUTOMATIC flags are folded into the value."""
    result = ctx.query("SELECT NAME, VALUE, VALUE_FLAGS FROM SYSIBMADM.DBCFG")
    if isinstance(result, EmptyResult):
        raise ParseError(NO_ROWS, "configuration rows")
    cfg: dict[str, str] = {}
    for row in result.rows:
        if not row:
            continue
        name = row[0].lower()
        value = row[1] if len(row) > 1 else ""
        flags = row[2] if len(row) > 2 else ""
        if flags.upper() == "AUTOMATIC":
            value = f"AUTOMATIC({value})" if value else "AUTOMATIC"
        cfg.setdefault(name, value)
    return cfg


@check("DATABASE_CONFIG", "database configuration")
def check_database_configuration(ctx: CheckContext) -> list[CheckOutcome]:
    cfg = read_db_config(ctx)
    outcomes: list[CheckOutcome] = []

    for name, label, param, rec in PENDING_FLAGS:
        value = cfg.get(param, "").upper()
        if value == "NO":
            outcomes.append(passed(name, f"{label}: {value}"))
        else:
            outcomes.append(failed(name, f"{label}: {value or 'Unknown'}", rec))

    for name, label, param, default in INFO_PARAMETERS:
        outcomes.append(info(name, f"{label}: {cfg.get(param) or 'Unknown'}", default))

    self_tuning = cfg.get("self_tuning_mem", "")
    if self_tuning.upper() == "OFF":
        outcomes.append(info("DB_CONFIG_SELF_TUNING_MEM", f"SELF_TUNING_MEM: {self_tuning}", "Recommendation: Set to ON"))
    else:
        outcomes.append(passed("DB_CONFIG_SELF_TUNING_MEM", f"SELF_TUNING_MEM: {self_tuning or 'Unknown'}"))

    db_memory = cfg.get("database_memory", "")
    if db_memory.upper().startswith("AUTOMATIC"):
        outcomes.append(passed("DB_CONFIG_DATABASE_MEMORY", f"DATABASE_MEMORY: {db_memory}"))
    else:
        outcomes.append(info("DB_CONFIG_DATABASE_MEMORY", f"DATABASE_MEMORY: {db_memory or 'Unknown'}",
                             "Recommendation: Set to AUTOMATIC"))

    outcomes.extend(log_configuration_outcomes(ctx, cfg))
    return outcomes


def log_configuration_outcomes(ctx: CheckContext, cfg: dict[str, str]) -> list[CheckOutcome]:
    """LOGSECOND, log space, log file limits, sizing and archiving outcomes."""
    outcomes: list[CheckOutcome] = []
    raw_filsiz = cfg.get("logfilsiz", "")
    raw_primary = cfg.get("logprimary", "")
    raw_second = cfg.get("logsecond", "")
    arch1 = cfg.get("logarchmeth1") or "OFF"
    arch2 = cfg.get("logarchmeth2") or "OFF"

    if raw_second == "-1":
        outcomes.append(warning("LOGSECOND_UNLIMITED", "LOGSECOND is set to -1 (unlimited)",
                                "RDS for Db2 does not support unlimited secondary log files. "
                                "Set LOGSECOND to a specific value"))

    try:
        logfilsiz = parse_int(raw_filsiz)
        logprimary = parse_int(raw_primary)
    except ParseError as e:
        param = "LOGFILSIZ" if not raw_filsiz.isdigit() else "LOGPRIMARY"
        outcomes.append(failed("LOG_SPACE_CALCULATION",
                               f"Unable to calculate log space - invalid {param} parameter: {e.raw}",
                               "Check log configuration parameters"))
        return outcomes
    try:
        logsecond = parse_int(raw_second, signed=True)
        if logsecond < -1:
            raise ParseError(raw_second)
    except ParseError as e:
        outcomes.append(failed("LOG_SPACE_CALCULATION",
                               f"Unable to calculate log space - invalid LOGSECOND parameter: {e.raw}",
                               "Check log configuration parameters"))
        return outcomes

    log_space_kb, primary_only = calculate_log_space(logfilsiz, logprimary, logsecond)
    if primary_only:
        logger.info("LOGSECOND=-1 (unlimited), calculating space for primary logs only")
        outcomes.append(info("LOG_SPACE_CALCULATION",
                             f"Primary log space: {format_size(log_space_kb)} "
                             f"(LOGFILSIZ={logfilsiz}, LOGPRIMARY={logprimary}, LOGSECOND=unlimited)",
                             "Informational"))
        outcomes.append(info("LOG_FILE_LIMITS", "Log file limits check skipped (LOGSECOND=-1)",
                             "Set specific LOGSECOND value for RDS for Db2"))
    else:
        outcomes.append(info("LOG_SPACE_CALCULATION",
                             f"Total log space: {format_size(log_space_kb)} "
                             f"(LOGFILSIZ={logfilsiz}, LOGPRIMARY={logprimary}, LOGSECOND={logsecond})",
                             "Informational"))
        outcomes.append(log_file_limit_outcome(logprimary + logsecond, arch1, arch2))

    _, sizing = sizing_outcomes(ctx, log_space_kb)
    outcomes.extend(sizing)

    outcomes.append(info("LOG_ARCHIVING", f"LOGARCHMETH1: {arch1}, LOGARCHMETH2: {arch2}", "Informational"))
    return outcomes


def log_file_limit_outcome(total_logs: int, logarchmeth1: str, logarchmeth2: str) -> CheckOutcome:
    archived = not (logarchmeth1.upper() == "OFF" and logarchmeth2.upper() == "OFF")
    if archived:
        limit, mode, rec = ARCHIVED_LOG_LIMIT, "archived", f"Reduce LOGPRIMARY + LOGSECOND to ≤{ARCHIVED_LOG_LIMIT}"
    else:
        limit, mode, rec = (NON_ARCHIVED_LOG_LIMIT, "non-archived",
                            f"Reduce LOGPRIMARY + LOGSECOND to ≤{NON_ARCHIVED_LOG_LIMIT} or enable log archiving")
    if total_logs <= limit:
        return passed("LOG_FILE_LIMITS", f"Total log files ({total_logs}) within limit for {mode} logging (≤{limit})")
    return failed("LOG_FILE_LIMITS", f"Total log files ({total_logs}) exceeds limit for {mode} logging (≤{limit})", rec)


# ── Federation ───────────────────────────────────────────────────────────────

@check("FEDERATION", "federation wrappers")
def check_federation(ctx: CheckContext) -> list[CheckOutcome]:
    try:
        result = ctx.query("SELECT WRAPNAME, LIBRARY FROM SYSCAT.WRAPPERS")
    except QueryConnectionError:
        return [passed("FEDERATION", "No federation wrappers found",
                       "Database may not have federation configured")]
    if isinstance(result, EmptyResult):
        return [passed("FEDERATION", "No federation wrappers found")]

    libraries = sorted({row[1] for row in result.rows if len(row) > 1 and row[1]})
    if not libraries:
        return [passed("FEDERATION", "No federation wrappers found")]
    unsupported = [lib for lib in libraries if not ctx.policy.is_allowed_library(lib)]
    if not unsupported:
        return [passed("FEDERATION_WRAPPER", f"Supported federation wrapper found: {', '.join(libraries)}")]
    allowed = " and ".join(ctx.policy.federation_allowed_libraries)
    return [failed("FEDERATION_WRAPPER", f"Unsupported federation wrapper found: {', '.join(unsupported)}",
                   f"RDS for Db2 only supports {allowed} (Db2 LUW, Db2 iSeries, Db2 z/OS); "
                   "Sybase, Informix, Teradata and JDBC wrappers are not supported")]
