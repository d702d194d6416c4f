"""
Command line entry point: db2-precheck.

Exit status is 1 when any check failed, 2 when the environment is unusable
(no Db2 command line processor, no driver, no instance), 0 otherwise.
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from config import Settings
from core.errors import FatalEnvironmentError
from core.inventory_export import SERIALIZERS, InventoryArtifacts, default_inventory_paths
from core.orchestrator import resolve_targets, run_precheck
from core.report import configure_report_logging, default_report_path, timestamp, write_report_header

logger = logging.getLogger("precheck")

EPILOG = """\
environment:
  DB2USER, DB2PASSWORD, DBNAME   all three select remote mode for a single database
  DB2INSTANCE                    instance to inspect in local mode (default: login user)
  INVENTORY                      set to false to skip the inventory
  REPORT_FILE_PATH               custom path for the validation report
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="db2-precheck",
        description="Validate Db2 databases for migration to RDS for Db2 and inventory their objects.",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--inventory", dest="inventory", action="store_true", default=None,
                       help="Force enable the inventory analysis (default behavior)")
    group.add_argument("--no-inventory", dest="inventory", action="store_false",
                       help="Exclude the inventory analysis")
    parser.add_argument("--report-file", metavar="PATH", help="Custom report file path")
    parser.add_argument("--serializer", choices=sorted(SERIALIZERS), help="Inventory JSON serializer")
    parser.add_argument("--output-dir", metavar="DIR", help="Directory for the report and inventory files")
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {}
    if args.verbose:
        overrides["VERBOSE"] = True
    if args.inventory is not None:
        overrides["INVENTORY"] = args.inventory
    if args.report_file:
        overrides["REPORT_FILE_PATH"] = args.report_file
    if args.output_dir:
        overrides["OUTPUT_DIR"] = args.output_dir
    if args.serializer:
        overrides["INVENTORY_SERIALIZER"] = args.serializer
    return Settings(**overrides)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    s = settings_from_args(args)
    remote = s.remote_mode
    stamp = timestamp()

    report_path = Path(s.REPORT_FILE_PATH) if s.REPORT_FILE_PATH else default_report_path(s.OUTPUT_DIR, remote, stamp)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    write_report_header(report_path, remote, s.DBNAME, s.DB2USER)
    configure_report_logging(report_path, s.VERBOSE)

    mode = "Remote Mode" if remote else "Local Mode"
    if s.INVENTORY:
        mode += " + Inventory"
    logger.info("=== DB2 Migration Prerequisites Validation Tool (%s) ===", mode)
    logger.info("Report will be saved to: %s", report_path)

    try:
        resolved = resolve_targets(s)
        artifacts = None
        if s.INVENTORY:
            detail, summary, json_path = default_inventory_paths(s.OUTPUT_DIR, remote, stamp)
            artifacts = InventoryArtifacts(
                target=s.DBNAME if remote else (resolved.instance or ""),
                detail_path=detail,
                summary_path=summary,
                json_path=json_path,
                serializer=s.INVENTORY_SERIALIZER,
            )
            logger.info("Inventory detail file: %s", detail)
            logger.info("Inventory summary file: %s", summary)
            logger.info("Inventory JSON file: %s", json_path)
        report = run_precheck(s, resolved=resolved, artifacts=artifacts, report_path=report_path)
    except FatalEnvironmentError as e:
        logger.error("%s", e)
        return 2
    return report.exit_code


if __name__ == "__main__":
    sys.exit(main())
