"""
Report emission through the standard logging module.

Every line goes to stderr and, when a report file is configured, to that file
as well, formatted as `[  LEVEL] YYYY-mm-dd HH:MM:SS - message`. SUCCESS is an
extra level between INFO and WARNING.
"""
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from models.precheck import AggregateReport, CheckOutcome, CheckStatus, DatabaseRun, Readiness, RunCounts, Target

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

REPORT_FORMAT = "[%(levelname)7s] %(asctime)s - %(message)s"
REPORT_DATEFMT = "%Y-%m-%d %H:%M:%S"
RULE = "=========================================="

report_logger = logging.getLogger("precheck.report")


def timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def default_report_path(output_dir: str, remote: bool, stamp: str) -> Path:
    suffix = "_remote" if remote else ""
    return Path(output_dir or ".") / f"db2_migration_prereq_report{suffix}_{stamp}.log"


def write_report_header(path: Path, remote: bool, database: str = "", user: str = "") -> None:
    lines = [
        "DB2 Migration Prerequisites Validation Report",
        f"Generated on: {datetime.now().strftime(REPORT_DATEFMT)}",
    ]
    if remote:
        lines += ["Mode: Remote Connection", f"Database: {database}", f"User: {user}"]
    else:
        lines.append("Mode: Local Connection")
    lines += ["=========================================", "", ""]
    path.write_text("\n".join(lines), encoding="utf-8")


def configure_report_logging(report_path: Optional[Path] = None, verbose: bool = False) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if report_path is not None:
        handlers.append(logging.FileHandler(report_path, mode="a", encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=REPORT_FORMAT,
        datefmt=REPORT_DATEFMT,
        handlers=handlers,
        force=True,
    )


_VERDICTS = {
    Readiness.NOT_READY: logging.ERROR,
    Readiness.REVIEW_REQUIRED: logging.WARNING,
    Readiness.READY: SUCCESS,
}


class ReportEmitter:
    """Writes outcome lines and summary blocks."""

    def __init__(self, logger: logging.Logger = report_logger):
        self.log = logger

    def banner(self, text: str) -> None:
        self.log.info(RULE)
        self.log.info(text)
        self.log.info(RULE)

    def database_start(self, target: Target) -> None:
        self.banner(f"Validating database: {target.label}")

    def outcome(self, o: CheckOutcome) -> None:
        tag = f"[{o.name}]"
        if o.status == CheckStatus.PASS:
            self.log.log(SUCCESS, "%s PASS - %s", tag, o.detail)
            if o.recommendation:
                self.log.info("%s RECOMMENDATION: %s", tag, o.recommendation)
        elif o.status == CheckStatus.FAIL:
            self.log.error("%s FAIL - %s", tag, o.detail)
            self.log.warning("%s RECOMMENDATION: %s", tag, o.recommendation)
        elif o.status == CheckStatus.WARNING:
            self.log.warning("%s WARNING - %s", tag, o.detail)
            self.log.info("%s RECOMMENDATION: %s", tag, o.recommendation)
        else:
            self.log.info("%s INFO - %s", tag, o.detail)
            self.log.info("%s RECOMMENDATION: %s", tag, o.recommendation)

    def _counters(self, counts: RunCounts, performed_label: str) -> None:
        self.log.info("%s: %d", performed_label, counts.total)
        self.log.log(SUCCESS, "Passed: %d", counts.passed)
        self.log.info("Warnings: %d", counts.warning)
        self.log.info("Failed: %d", counts.failed)
        self.log.info("Informational: %d", counts.info)
        self.log.info(RULE)

    def database_summary(self, run: DatabaseRun) -> None:
        database = run.target.database
        self.banner(f"DATABASE SUMMARY: {database}")
        self._counters(run.counts, "Checks performed")
        level = _VERDICTS[run.readiness]
        self.log.log(level, "DATABASE READINESS: %s", run.readiness.value)
        if run.readiness == Readiness.NOT_READY:
            self.log.log(level, "Database %s has %d failed check(s)", database, run.counts.failed)
        elif run.readiness == Readiness.REVIEW_REQUIRED:
            self.log.log(level, "Database %s has %d warning(s)", database, run.counts.warning)
        else:
            self.log.log(level, "Database %s passed all checks", database)
        self.log.info(RULE)
        self.log.info("")
        self.log.info("")

    def alias_hints(self, remote_databases: list[str], dsn_aliases: list[str]) -> None:
        if remote_databases:
            self.log.info("List of remote catalogued databases are: %s", " ".join(remote_databases))
        if dsn_aliases:
            self.log.info("List of DSN entries found in db2dsdriver.cfg are: %s", " ".join(dsn_aliases))
        if remote_databases or dsn_aliases:
            self.log.info("If you are trying to connect to a remote database, please set DB2USER, "
                          "DB2PASSWORD, and DBNAME environment variables.")
            self.log.info("DBNAME is the remote catalogued database name or the DSN alias defined "
                          "in db2dsdriver.cfg. Run the tool again after setting them.")

    def overall_summary(self, report: AggregateReport, report_path: Optional[Path] = None) -> None:
        self.banner("OVERALL VALIDATION SUMMARY REPORT")
        self._counters(report.totals, "Total checks performed")
        readiness = report.overall_readiness
        level = _VERDICTS[readiness]
        self.log.log(level, "OVERALL MIGRATION READINESS: %s", readiness.value)
        if readiness == Readiness.NOT_READY:
            self.log.log(level, "Please address the failed checks before proceeding with migration.")
        elif readiness == Readiness.REVIEW_REQUIRED:
            self.log.log(level, "Please review the warnings and recommendations.")
        else:
            self.log.log(level, "All prerequisite checks passed successfully.")
        if report_path is not None:
            self.log.info("Detailed report saved to: %s", report_path)

    def inventory_files(self, summary: Path, detail: Path, json_path: Path) -> None:
        self.log.info("")
        self.banner("INVENTORY FILES GENERATED")
        self.log.info("Inventory summary: %s", summary)
        self.log.info("Inventory details: %s", detail)
        self.log.info("Inventory JSON: %s", json_path)
        self.log.info(RULE)
