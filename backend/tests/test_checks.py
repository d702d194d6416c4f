import pytest

from core.aggregator import RunAggregator
from core.checks import (
    CHECK_REGISTRY, CheckSpec, check_autostorage, check_database_configuration, check_database_version,
    check_federation, check_indoubt_transactions, check_invalid_objects, check_java_procedures,
    check_non_fenced_routines, check_tablespace_state, check_update_level, log_file_limit_outcome,
)
from core.errors import QueryConnectionError
from core.executor import run_checks
from core.results import EmptyResult
from fakes import dbcfg, healthy_responses, make_context, remote_target, rows, table
from models.precheck import CheckStatus, Readiness


def _by_name(outcomes):
    return {o.name: o for o in outcomes}


def test_registry_order():
    assert [spec.name for spec in CHECK_REGISTRY] == [
        "DATABASE_VERSION", "DB2_UPDATE_LEVEL", "INDOUBT_TRANSACTIONS", "INVALID_OBJECTS",
        "TABLESPACE_STATE", "NON_FENCED_ROUTINES", "JAVA_PROCEDURES", "AUTOSTORAGE",
        "DATABASE_CONFIG", "FEDERATION",
    ]


def test_healthy_database_is_ready():
    ctx = make_context(healthy_responses())
    agg = RunAggregator(ctx.target)
    run_checks(ctx, agg)
    run = agg.finalize()
    assert run.counts.failed == 0
    assert run.counts.warning == 0
    assert run.counts.passed == 16
    assert run.counts.info == 13
    assert run.counts.total == 16
    assert run.readiness == Readiness.READY


def test_executor_reports_outcomes_in_order():
    seen = []
    ctx = make_context(healthy_responses())
    agg = RunAggregator(ctx.target)
    run_checks(ctx, agg, on_outcome=seen.append)
    assert seen == agg.outcomes
    assert seen[0].name == "DATABASE_VERSION"
    assert seen[-1].name == "FEDERATION"


def test_executor_turns_unexpected_errors_into_failures():
    def broken(ctx):
        raise RuntimeError("boom")

    ctx = make_context(healthy_responses())
    agg = RunAggregator(ctx.target)
    run_checks(ctx, agg, registry=[CheckSpec("BROKEN", broken), CHECK_REGISTRY[3]])
    outcomes = agg.outcomes
    assert outcomes[0].name == "BROKEN"
    assert outcomes[0].status == CheckStatus.FAIL
    assert "boom" in outcomes[0].detail
    assert outcomes[1].name == "INVALID_OBJECTS"
    assert outcomes[1].status == CheckStatus.PASS


# ── Individual checks ────────────────────────────────────────────────────────

def test_database_version():
    [o] = check_database_version(make_context(healthy_responses()))
    assert o.status == CheckStatus.INFO
    assert o.detail == "Database version: 11.5.9.0"


def test_database_version_unavailable():
    [o] = check_database_version(make_context({}))
    assert o.status == CheckStatus.INFO
    assert "Unable to retrieve database version" in o.detail


def test_update_level_reminder():
    [o] = check_update_level(make_context({}))
    assert o.status == CheckStatus.PASS
    assert 'db2updv115 -d "SAMPLE"' in o.detail


def test_update_level_tool_missing_locally():
    [o] = check_update_level(make_context({}, tools=()))
    assert o.status == CheckStatus.INFO
    assert o.detail == "db2updv115 command not found"


def test_update_level_remote_skips_tool_lookup():
    [o] = check_update_level(make_context({}, target=remote_target(), tools=()))
    assert o.status == CheckStatus.PASS


def test_invalid_objects_none():
    [o] = check_invalid_objects(make_context({"SYSCAT.INVALIDOBJECTS": rows((0,))}))
    assert o.status == CheckStatus.PASS
    assert o.detail == "No invalid objects found"


def test_invalid_objects_found():
    [o] = check_invalid_objects(make_context({"SYSCAT.INVALIDOBJECTS": rows((5,))}))
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Found 5 invalid object(s)"
    assert "ADMIN_REVALIDATE_DB_OBJECTS" in o.recommendation


def test_invalid_objects_unparseable_result_fails_closed():
    [o] = check_invalid_objects(make_context({"SYSCAT.INVALIDOBJECTS": rows(("SQL0551N",))}))
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Invalid result from invalid objects query: SQL0551N"
    assert o.recommendation == "Check database status and connectivity"


def test_invalid_objects_query_failure():
    [o] = check_invalid_objects(make_context({}))
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Unable to query invalid objects for SAMPLE"
    assert o.recommendation == "Check database connectivity and permissions"


def test_indoubt_transactions_found():
    [o] = check_indoubt_transactions(make_context({"MON_GET_TRANSACTION_LOG": rows((2,))}))
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Found 2 in-doubt transaction(s)"


def test_tablespace_not_normal():
    responses = {"TBSP_ID, TBSP_NAME, TBSP_STATE": table(
        ("TBSP_ID", "TBSP_NAME", "TBSP_STATE"),
        (0, "SYSCATSPACE", "NORMAL"),
        (3, "TS_DATA", "BACKUP_PENDING"),
    )}
    [o] = check_tablespace_state(make_context(responses))
    assert o.status == CheckStatus.FAIL
    assert "TS_DATA (BACKUP_PENDING)" in o.detail
    assert "SYSCATSPACE" not in o.detail


def test_tablespace_no_rows_fails_closed():
    [o] = check_tablespace_state(make_context({"TBSP_ID, TBSP_NAME, TBSP_STATE": EmptyResult()}))
    assert o.status == CheckStatus.FAIL
    assert o.detail.startswith("Invalid result from tablespace states query")


def test_non_fenced_routines_excludes_system_schemas():
    ctx = make_context({"COUNT(*) FROM SYSCAT.ROUTINES WHERE FENCED": rows((3,))})
    [o] = check_non_fenced_routines(ctx)
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Found 3 non-fenced routine(s)"
    count_sql = ctx.gateway.statements[0]
    assert "ROUTINESCHEMA NOT IN ('SQLJ','SYSCAT','SYSFUN','SYSIBM','SYSIBMADM','SYSPROC','SYSTOOLS')" in count_sql


def test_java_procedures_found():
    ctx = make_context({"SYSIBM.SYSJARCONTENTS": rows(("APP", "MYJAR", "com.example.Proc"))})
    [o] = check_java_procedures(ctx)
    assert o.status == CheckStatus.PASS
    assert "1 JAR class" in o.detail
    assert "sqlj.install_jar" in o.recommendation


def test_java_procedures_query_failure_passes():
    [o] = check_java_procedures(make_context({}))
    assert o.status == CheckStatus.PASS
    assert o.detail == "Did not find any Java stored procedures for SAMPLE"


def test_autostorage_missing():
    [o] = check_autostorage(make_context({"ADMIN_GET_STORAGE_PATHS": rows((0,))}))
    assert o.status == CheckStatus.FAIL
    assert "CREATE STOGROUP" in o.recommendation


# ── Federation ───────────────────────────────────────────────────────────────

def test_federation_supported_wrapper():
    ctx = make_context({"SYSCAT.WRAPPERS": rows(("DRDA", "libdb2drda.so"))})
    [o] = check_federation(ctx)
    assert o.name == "FEDERATION_WRAPPER"
    assert o.status == CheckStatus.PASS


def test_federation_unsupported_wrapper():
    ctx = make_context({"SYSCAT.WRAPPERS": rows(("DRDA", "libdb2drda.so"), ("CTLIB", "libdb2ctlib.so"))})
    [o] = check_federation(ctx)
    assert o.status == CheckStatus.FAIL
    assert "libdb2ctlib.so" in o.detail
    assert "libdb2drda.so" not in o.detail


def test_federation_no_wrappers():
    [o] = check_federation(make_context({"SYSCAT.WRAPPERS": EmptyResult()}))
    assert o.name == "FEDERATION"
    assert o.status == CheckStatus.PASS


def test_federation_wrappers_without_libraries():
    [o] = check_federation(make_context({"SYSCAT.WRAPPERS": rows(("DRDA", ""), ("NET8", ""))}))
    assert o.name == "FEDERATION"
    assert o.status == CheckStatus.PASS
    assert o.detail == "No federation wrappers found"


def test_federation_query_failure_passes():
    [o] = check_federation(make_context({}))
    assert o.status == CheckStatus.PASS
    assert o.detail == "No federation wrappers found"


# ── Database configuration ───────────────────────────────────────────────────

def _config_outcomes(**overrides):
    ctx = make_context(healthy_responses(**{"SYSIBMADM.DBCFG": dbcfg(**overrides)}))
    return _by_name(check_database_configuration(ctx))


def test_healthy_configuration():
    out = _config_outcomes()
    assert out["DB_CONFIG_BACKUP_PENDING"].status == CheckStatus.PASS
    assert out["DB_CONFIG_DATABASE_MEMORY"].detail == "DATABASE_MEMORY: AUTOMATIC(131072)"
    assert out["LOG_SPACE_CALCULATION"].detail.startswith("Total log space: 400 MB")
    assert out["LOG_FILE_LIMITS"].status == CheckStatus.PASS
    assert out["LOG_FILE_LIMITS"].detail == "Total log files (25) within limit for archived logging (≤4096)"
    assert out["LOG_ARCHIVING"].detail == "LOGARCHMETH1: DISK:/db2/archive/, LOGARCHMETH2: OFF"
    assert "LOGSECOND_UNLIMITED" not in out
    assert out["RDS_SIZING_TIER"].detail == "Recommended RDS storage: 20 GB (minimum)"


def test_pending_flag_fails():
    out = _config_outcomes(backup_pending="YES")
    assert out["DB_CONFIG_BACKUP_PENDING"].status == CheckStatus.FAIL
    assert out["DB_CONFIG_BACKUP_PENDING"].detail == "Backup pending: YES"


def test_missing_pending_flag_is_unknown_and_fails():
    out = _config_outcomes(upgrade_pending=None)
    assert out["DB_CONFIG_UPGRADE_PENDING"].status == CheckStatus.FAIL
    assert out["DB_CONFIG_UPGRADE_PENDING"].detail == "Upgrade pending: Unknown"


def test_memory_recommendations():
    out = _config_outcomes(self_tuning_mem="OFF", database_memory="40000")
    assert out["DB_CONFIG_SELF_TUNING_MEM"].status == CheckStatus.INFO
    assert out["DB_CONFIG_DATABASE_MEMORY"].status == CheckStatus.INFO
    assert out["DB_CONFIG_DATABASE_MEMORY"].recommendation == "Recommendation: Set to AUTOMATIC"


def test_unlimited_logsecond():
    out = _config_outcomes(logsecond="-1")
    assert out["LOGSECOND_UNLIMITED"].status == CheckStatus.WARNING
    assert out["LOG_SPACE_CALCULATION"].detail.startswith("Primary log space: 208 MB")
    assert out["LOG_FILE_LIMITS"].status == CheckStatus.INFO
    assert "skipped" in out["LOG_FILE_LIMITS"].detail


def test_log_file_limit_without_archiving():
    out = _config_outcomes(logprimary="200", logsecond="100", logarchmeth1="OFF")
    limits = out["LOG_FILE_LIMITS"]
    assert limits.status == CheckStatus.FAIL
    assert limits.detail == "Total log files (300) exceeds limit for non-archived logging (≤254)"
    assert "enable log archiving" in limits.recommendation


def test_invalid_logfilsiz_stops_log_outcomes():
    out = _config_outcomes(logfilsiz="AUTOMATIC")
    calc = out["LOG_SPACE_CALCULATION"]
    assert calc.status == CheckStatus.FAIL
    assert calc.detail == "Unable to calculate log space - invalid LOGFILSIZ parameter: AUTOMATIC"
    assert "RDS_SIZING_RECOMMENDATION" not in out
    assert "LOG_ARCHIVING" not in out


def test_configuration_query_failure():
    ctx = make_context({"SYSIBMADM.DBCFG": QueryConnectionError("SAMPLE", "SELECT", "SQL30081N")})
    [o] = check_database_configuration(ctx)
    assert o.name == "DATABASE_CONFIG"
    assert o.status == CheckStatus.FAIL
    assert o.detail == "Unable to query database configuration for SAMPLE"


@pytest.mark.parametrize("failing", ["SYSCAT.INVALIDOBJECTS", "ADMIN_GET_STORAGE_PATHS", "SYSIBMADM.DBCFG"])
def test_one_failing_query_does_not_stop_the_run(failing):
    responses = healthy_responses()
    responses[failing] = QueryConnectionError("SAMPLE", failing, "SQL30081N")
    ctx = make_context(responses)
    agg = RunAggregator(ctx.target)
    run_checks(ctx, agg)
    names = [o.name for o in agg.outcomes]
    assert names[-1] == "FEDERATION"
    assert agg.counts.failed == 1


@pytest.mark.parametrize("total,arch1,arch2,status,limit", [
    (254, "OFF", "OFF", CheckStatus.PASS, 254),
    (255, "OFF", "OFF", CheckStatus.FAIL, 254),
    (4096, "DISK:/db2/archive/", "OFF", CheckStatus.PASS, 4096),
    (4097, "DISK:/db2/archive/", "OFF", CheckStatus.FAIL, 4096),
    (4097, "OFF", "TSM", CheckStatus.FAIL, 4096),
])
def test_log_file_limit_boundaries(total, arch1, arch2, status, limit):
    o = log_file_limit_outcome(total, arch1, arch2)
    assert o.name == "LOG_FILE_LIMITS"
    assert o.status == status
    assert f"({total})" in o.detail
    assert o.detail.endswith(f"(≤{limit})")
    if status == CheckStatus.FAIL:
        assert o.recommendation.startswith(f"Reduce LOGPRIMARY + LOGSECOND to ≤{limit}")
