from types import SimpleNamespace

import pytest

from config import Settings
from core.catalog import current_instance, parse_db_directory, parse_dsn_aliases, read_db_directory, split_directory
from core.errors import FatalEnvironmentError
from core.inventory_export import InventoryArtifacts, default_inventory_paths
from core.orchestrator import ResolvedTargets, resolve_targets, run_precheck
from fakes import FakeGateway, healthy_responses, inventory_responses, local_target, rows
from models.precheck import CheckStatus, ConnectionMode, Readiness

DIRECTORY = """
 System Database Directory

 Number of entries in the directory = 3

Database 1 entry:

 Database alias                       = SAMPLE
 Database name                        = SAMPLE
 Local database directory             = /home/db2inst1
 Database release level               = 15.00
 Comment                              =
 Directory entry type                 = Indirect
 Catalog database partition number    = 0
 Alternate server hostname            =
 Alternate server port number         =

Database 2 entry:

 Database alias                       = RDSPROD
 Database name                        = PRODDB
 Node name                            = RDSNODE
 Database release level               = 15.00
 Comment                              =
 Directory entry type                 = Remote
 Authentication                       = SERVER_ENCRYPT
 Catalog database partition number    = -1

Database 3 entry:

 Database alias                       = HRDB
 Database name                        = HRDB
 Local database directory             = /db2/data
 Database release level               = 15.00
 Comment                              = HR data
 Directory entry type                 = Indirect
 Catalog database partition number    = 0
"""

DSDRIVER_CFG = """<?xml version="1.0" encoding="UTF-8" standalone="no" ?>
<configuration>
  <dsncollection>
    <dsn alias="PRODDSN" name="PRODDB" host="prod.example.com" port="50000"/>
    <dsn alias="RDSADMIN" name="RDSADMIN" host="prod.example.com" port="50000"/>
    <dsn alias="REPORTING" name="REPDB" host="rep.example.com" port="50000"/>
  </dsncollection>
  <databases>
    <database name="PRODDB" host="prod.example.com" port="50000"/>
  </databases>
</configuration>
"""


def _settings(**overrides):
    values = dict(DB2USER="", DB2PASSWORD="", DBNAME="", DB2INSTANCE="db2inst1", INVENTORY=False)
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _which(*available):
    return lambda name: f"/opt/ibm/db2/bin/{name}" if name in available else None


# ── Discovery ────────────────────────────────────────────────────────────────

def test_parse_db_directory():
    entries = parse_db_directory(DIRECTORY)
    assert [(e.alias, e.database, e.entry_type) for e in entries] == [
        ("SAMPLE", "SAMPLE", "Indirect"),
        ("RDSPROD", "PRODDB", "Remote"),
        ("HRDB", "HRDB", "Indirect"),
    ]
    local, remote = split_directory(entries)
    assert local == ["HRDB", "SAMPLE"]
    assert remote == ["PRODDB"]


def test_parse_empty_directory():
    assert parse_db_directory("SQL1057W  The system database directory is empty.") == []


def test_parse_dsn_aliases_skips_rdsadmin():
    assert parse_dsn_aliases(DSDRIVER_CFG) == ["PRODDSN", "REPORTING"]
    assert parse_dsn_aliases("<configuration><dsn") == []


def test_read_db_directory_without_clp():
    def missing(*args, **kwargs):
        raise FileNotFoundError("db2")

    with pytest.raises(FatalEnvironmentError):
        read_db_directory(run=missing)


def test_read_db_directory_returns_stdout():
    def fake_run(cmd, **kwargs):
        assert cmd == ["db2", "list", "db", "directory"]
        return SimpleNamespace(returncode=0, stdout=DIRECTORY)

    assert "Database 1 entry" in read_db_directory(run=fake_run)


def test_current_instance_prefers_configured_value():
    assert current_instance("db2inst9") == "db2inst9"


# ── Target resolution ────────────────────────────────────────────────────────

def test_remote_mode_needs_all_three_credentials():
    s = _settings(DB2USER="db2admin", DB2PASSWORD="secret", DBNAME="PRODDSN", DB2_HOST="prod.example.com")
    resolved = resolve_targets(s, read_directory=lambda: pytest.fail("no directory lookup in remote mode"))
    assert resolved.mode == ConnectionMode.REMOTE
    [target] = resolved.targets
    assert target.database == "PRODDSN"
    assert target.user == "db2admin"
    assert target.host == "prod.example.com"

    partial = _settings(DB2USER="db2admin", DBNAME="PRODDSN")
    assert not partial.remote_mode


def test_local_mode_requires_clp():
    with pytest.raises(FatalEnvironmentError):
        resolve_targets(_settings(), read_directory=lambda: DIRECTORY, which=_which())


def test_local_mode_skips_remote_entries():
    resolved = resolve_targets(_settings(), read_directory=lambda: DIRECTORY, which=_which("db2"))
    assert resolved.mode == ConnectionMode.LOCAL
    assert resolved.instance == "db2inst1"
    assert [t.database for t in resolved.targets] == ["HRDB", "SAMPLE"]
    assert resolved.remote_databases == ["PRODDB"]
    assert resolved.dsn_aliases == []


def test_local_mode_without_local_databases_surfaces_hints(tmp_path):
    cfg = tmp_path / "db2dsdriver.cfg"
    cfg.write_text(DSDRIVER_CFG)
    remote_only = DIRECTORY.split("Database 3 entry:")[0].replace("= Indirect", "= Remote")
    resolved = resolve_targets(
        _settings(DB2DSDRIVER_CFG=str(cfg)), read_directory=lambda: remote_only, which=_which("db2"),
    )
    assert resolved.targets == []
    assert resolved.alias_hints == ["PRODDB", "SAMPLE", "PRODDSN", "REPORTING"]


# ── Runs ─────────────────────────────────────────────────────────────────────

UPDATE_TOOL = _which("db2", "db2updv115")


def _local(*databases):
    return ResolvedTargets(
        mode=ConnectionMode.LOCAL,
        instance="db2inst1",
        targets=[local_target(db) for db in databases],
    )


def test_run_precheck_is_sequential_and_aggregates():
    gateway = FakeGateway(healthy_responses())
    report = run_precheck(_settings(), gateway=gateway, resolved=_local("SAMPLE", "HRDB"),
                          which=UPDATE_TOOL)
    assert [r.target.database for r in report.runs] == ["SAMPLE", "HRDB"]
    assert report.totals.total == 32
    assert report.totals.info == 26
    assert report.overall_readiness == Readiness.READY
    assert report.exit_code == 0
    assert all(r.inventory is None for r in report.runs)


def test_one_failing_database_fails_the_run():
    responses = healthy_responses(**{"SYSCAT.INVALIDOBJECTS": rows((4,))})
    report = run_precheck(_settings(), gateway=FakeGateway(responses), resolved=_local("SAMPLE"),
                          which=UPDATE_TOOL)
    assert report.runs[0].readiness == Readiness.NOT_READY
    assert report.overall_readiness == Readiness.NOT_READY
    assert report.exit_code == 1


def test_missing_driver_is_fatal_before_any_statement():
    gateway = FakeGateway(healthy_responses(), driver_error=True)
    with pytest.raises(FatalEnvironmentError):
        run_precheck(_settings(), gateway=gateway, resolved=_local("SAMPLE"))
    assert gateway.statements == []


def test_no_targets_gives_empty_ready_report():
    resolved = ResolvedTargets(mode=ConnectionMode.LOCAL, instance="db2inst1", targets=[],
                               remote_databases=["PRODDB"])
    report = run_precheck(_settings(), gateway=FakeGateway(), resolved=resolved)
    assert report.runs == []
    assert report.alias_hints == ["PRODDB"]
    assert report.exit_code == 0


def test_inventory_is_collected_and_flushed(tmp_path):
    responses = healthy_responses()
    responses.update(inventory_responses())
    detail, summary, json_path = default_inventory_paths(str(tmp_path), False, "20240501_100000")
    artifacts = InventoryArtifacts("db2inst1", detail, summary, json_path)

    report = run_precheck(
        _settings(INVENTORY=True), gateway=FakeGateway(responses), resolved=_local("SAMPLE"),
        artifacts=artifacts, which=UPDATE_TOOL,
    )
    [run] = report.runs
    assert run.inventory is not None
    assert run.inventory.count("tables") == 2
    assert run.counts.info == 13 + 34
    assert run.outcomes[-1].name == "INVENTORY_SHADOW_TABLES"
    assert json_path.exists()
    assert summary.exists()
    assert detail.exists()


def test_update_level_tool_lookup_is_injected():
    report = run_precheck(_settings(), gateway=FakeGateway(healthy_responses()), resolved=_local("SAMPLE"),
                          which=_which("db2"))
    outcome = next(o for o in report.runs[0].outcomes if o.name == "DB2_UPDATE_LEVEL")
    assert outcome.status == CheckStatus.INFO
    assert "db2updv115 command not found" in outcome.detail
    assert report.totals.total == 15
