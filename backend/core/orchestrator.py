"""
Orchestrator: resolve targets, then validate them one at a time.

Remote mode validates the single database named by DBNAME with explicit
credentials. Local mode validates every database the current instance has
catalogued as Indirect; remote catalogue entries and DSN aliases are only
reported as hints for switching to remote mode.
"""
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Sequence

from config import Settings
from core.aggregator import RunAggregator, build_report
from core.catalog import current_instance, parse_db_directory, read_db_directory, read_dsn_aliases, split_directory
from core.checks import CHECK_REGISTRY, CheckSpec
from core.context import CheckContext, Gateway
from core.errors import FatalEnvironmentError
from core.executor import run_checks
from core.gateway import QueryGateway
from core.inventory import collect_inventory, inventory_outcomes
from core.inventory_export import InventoryArtifacts
from core.policy import PrecheckPolicy
from core.report import ReportEmitter
from models.precheck import AggregateReport, ConnectionMode, DatabaseRun, Target

logger = logging.getLogger(__name__)


@dataclass
class ResolvedTargets:
    mode: ConnectionMode
    targets: list[Target]
    instance: Optional[str] = None
    remote_databases: list[str] = field(default_factory=list)
    dsn_aliases: list[str] = field(default_factory=list)

    @property
    def alias_hints(self) -> list[str]:
        return self.remote_databases + [a for a in self.dsn_aliases if a not in self.remote_databases]


def resolve_targets(
    settings: Settings,
    read_directory: Callable[[], str] = read_db_directory,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> ResolvedTargets:
    if settings.remote_mode:
        logger.info("Connecting to database: %s as user: %s", settings.DBNAME, settings.DB2USER)
        target = Target(
            database=settings.DBNAME,
            mode=ConnectionMode.REMOTE,
            user=settings.DB2USER,
            password=settings.DB2PASSWORD,
            host=settings.DB2_HOST or None,
            port=settings.DB2_PORT,
        )
        return ResolvedTargets(mode=ConnectionMode.REMOTE, targets=[target])

    if which("db2") is None:
        raise FatalEnvironmentError(
            "DB2 command not found. Please ensure DB2 is installed and sourced "
            "(try: . ~db2inst1/sqllib/db2profile)"
        )
    instance = current_instance(settings.DB2INSTANCE)
    logger.info("Current logged-in instance: %s", instance)

    local, remote = split_directory(parse_db_directory(read_directory()))
    for db in remote:
        logger.debug("Found remote catalogued database: %s. Skipping it", db)
    resolved = ResolvedTargets(
        mode=ConnectionMode.LOCAL,
        instance=instance,
        targets=[Target(database=db, mode=ConnectionMode.LOCAL, instance=instance) for db in local],
        remote_databases=remote,
    )
    if not local:
        resolved.dsn_aliases = read_dsn_aliases(settings.DB2DSDRIVER_CFG or None)
    return resolved


def run_target(
    ctx: CheckContext,
    emitter: ReportEmitter,
    inventory: bool = True,
    artifacts: Optional[InventoryArtifacts] = None,
    registry: Sequence[CheckSpec] = CHECK_REGISTRY,
) -> DatabaseRun:
    emitter.database_start(ctx.target)
    aggregator = RunAggregator(ctx.target)
    run_checks(ctx, aggregator, registry, on_outcome=emitter.outcome)
    logger.info("Validation completed for database: %s", ctx.database)

    catalog = None
    if inventory:
        catalog = collect_inventory(ctx)
        for outcome in inventory_outcomes(catalog):
            aggregator.add(outcome)
            emitter.outcome(outcome)
        if artifacts is not None:
            artifacts.add(catalog)

    run = aggregator.finalize(catalog)
    emitter.database_summary(run)
    return run


def run_precheck(
    settings: Settings,
    gateway: Optional[Gateway] = None,
    resolved: Optional[ResolvedTargets] = None,
    emitter: Optional[ReportEmitter] = None,
    artifacts: Optional[InventoryArtifacts] = None,
    registry: Sequence[CheckSpec] = CHECK_REGISTRY,
    report_path: Optional[Path] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> AggregateReport:
    """Validate every resolved target sequentially and return the aggregate report."""
    gateway = gateway or QueryGateway(settings.DB2_DIALECT, settings.TARGET_URL)
    resolved = resolved or resolve_targets(settings)
    emitter = emitter or ReportEmitter()
    policy = PrecheckPolicy.from_settings(settings)

    if resolved.targets:
        gateway.check_driver(resolved.targets[0])
        names = " ".join(t.database for t in resolved.targets)
        logger.info("Found %d database(s) to validate: %s", len(resolved.targets), names)
    else:
        logger.warning("No local catalogued databases found in the current instance: %s", resolved.instance)
        emitter.alias_hints(resolved.remote_databases, resolved.dsn_aliases)

    runs = []
    for target in resolved.targets:
        ctx = CheckContext(gateway=gateway, target=target, policy=policy, which=which)
        runs.append(run_target(ctx, emitter, settings.INVENTORY, artifacts, registry))

    report = build_report(resolved.mode, runs, resolved.instance, resolved.alias_hints)
    emitter.overall_summary(report, report_path)
    if artifacts is not None and runs:
        emitter.inventory_files(artifacts.summary_path, artifacts.detail_path, artifacts.json_path)
    return report
