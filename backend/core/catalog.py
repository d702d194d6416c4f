"""
Local discovery: the current instance, its database directory and the DSN
aliases defined in db2dsdriver.cfg.
"""
import getpass
import logging
import re
import subprocess
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from core.errors import FatalEnvironmentError

logger = logging.getLogger(__name__)

_FIELD = re.compile(r"^\s*(?P<key>[A-Za-z][A-Za-z ]*?)\s*=\s*(?P<value>.*?)\s*$")

DEFAULT_DSDRIVER_CFG = Path.home() / "sqllib" / "cfg" / "db2dsdriver.cfg"


@dataclass(frozen=True)
class DirectoryEntry:
    database: str
    alias: str
    entry_type: str

    @property
    def is_local(self) -> bool:
        return self.entry_type.lower() == "indirect"


def parse_db_directory(text: str) -> list[DirectoryEntry]:
    """Parse `db2 list db directory` output into one entry per catalogued alias."""
    entries: list[DirectoryEntry] = []
    current: dict[str, str] = {}

    def flush():
        if current.get("database name"):
            entries.append(DirectoryEntry(
                database=current["database name"],
                alias=current.get("database alias", current["database name"]),
                entry_type=current.get("directory entry type", ""),
            ))

    for line in text.splitlines():
        if re.match(r"^\s*Database \d+ entry:", line):
            flush()
            current = {}
            continue
        m = _FIELD.match(line)
        if m:
            current[m.group("key").strip().lower()] = m.group("value")
    flush()
    return entries


def split_directory(entries: list[DirectoryEntry]) -> tuple[list[str], list[str]]:
    """(connectable local databases, remote catalogued databases), each sorted and unique."""
    local = sorted({e.database for e in entries if e.is_local})
    remote = sorted({e.database for e in entries if not e.is_local} - set(local))
    return local, remote


def read_db_directory(run: Callable = subprocess.run) -> str:
    try:
        proc = run(["db2", "list", "db", "directory"], capture_output=True, text=True)
    except FileNotFoundError as e:
        raise FatalEnvironmentError(
            "DB2 command not found. Please ensure DB2 is installed and sourced "
            "(try: . ~db2inst1/sqllib/db2profile)"
        ) from e
    if proc.returncode != 0:
        # SQL1057W: the system database directory is empty
        logger.debug("db2 list db directory exited %d: %s", proc.returncode, proc.stdout.strip())
    return proc.stdout or ""


def parse_dsn_aliases(xml_text: str) -> list[str]:
    """DSN alias names from db2dsdriver.cfg, without the rdsadmin entries."""
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        logger.warning("Unable to parse db2dsdriver.cfg: %s", e)
        return []
    aliases = []
    for dsn in root.iter("dsn"):
        alias = (dsn.get("alias") or "").strip()
        if alias and "rdsadmin" not in alias.lower() and alias not in aliases:
            aliases.append(alias)
    return aliases


def read_dsn_aliases(path: Optional[str] = None) -> list[str]:
    cfg = Path(path) if path else DEFAULT_DSDRIVER_CFG
    if not cfg.is_file():
        return []
    return parse_dsn_aliases(cfg.read_text(encoding="utf-8", errors="replace"))


def current_instance(configured: str = "") -> str:
    """DB2INSTANCE when set, otherwise the login user."""
    if configured:
        return configured
    try:
        user = getpass.getuser()
    except (KeyError, OSError) as e:
        raise FatalEnvironmentError("Unable to determine current DB2 instance") from e
    if not user:
        raise FatalEnvironmentError("Unable to determine current DB2 instance")
    return user
