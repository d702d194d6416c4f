"""
Inventory artifacts: the JSON document and the summary/detail text files.

build_inventory_document() is the one place that decides the document's
shape. The two serializers render that value, one through the pydantic models
in models.inventory and one by assembling plain dicts for json.dumps.
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from core.errors import DegradedSerialization
from core.inventory import CATEGORIES, GROUP_KEYS, GROUPS
from models.inventory import (
    DatabaseInventory, DatabaseInventoryEntry, InstanceSummary, InventoryCatalog, InventoryCategory,
    InventoryDocumentModel, InventorySummary,
)

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
RULE = "=========================================="

SUMMARY_KEYS = (
    ("basic_objects", "total_basic_objects"),
    ("constraints", "total_constraints"),
    ("security_features", "total_security_features"),
    ("data_complexity", "total_data_complexity"),
    ("storage_complexity", "total_storage_complexity"),
    ("advanced_features", "total_advanced_features"),
)


# ── Canonical document ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class DatabaseSection:
    database: str
    generated: str
    groups: dict[str, dict[str, InventoryCategory]]
    summary: dict[str, int]


@dataclass(frozen=True)
class InventoryDocument:
    target: str
    generated: str
    databases: list[DatabaseSection]
    instance_summary: dict[str, int]

    @property
    def database_count(self) -> int:
        return len(self.databases)


def _section(catalog: InventoryCatalog) -> DatabaseSection:
    groups: dict[str, dict[str, InventoryCategory]] = {key: {} for key in GROUP_KEYS}
    for spec in CATEGORIES:
        if spec.key in catalog.categories:
            groups[spec.group][spec.key] = catalog.categories[spec.key]

    summary = {
        total: sum(len(cat.items) for cat in groups[group].values())
        for group, total in SUMMARY_KEYS
    }
    summary["total_schemas"] = catalog.count("schemas")
    return DatabaseSection(
        database=catalog.database,
        generated=catalog.generated.strftime(TIMESTAMP_FORMAT),
        groups=groups,
        summary=summary,
    )


def build_inventory_document(
    target: str,
    catalogs: list[InventoryCatalog],
    generated: Optional[datetime] = None,
) -> InventoryDocument:
    sections = [_section(c) for c in catalogs]
    instance_summary = {"total_databases": len(sections)}
    for total in [t for _, t in SUMMARY_KEYS] + ["total_schemas"]:
        instance_summary[total] = sum(s.summary[total] for s in sections)
    return InventoryDocument(
        target=target,
        generated=(generated or datetime.now()).strftime(TIMESTAMP_FORMAT),
        databases=sections,
        instance_summary=instance_summary,
    )


# ── Serializers ──────────────────────────────────────────────────────────────

class Serializer(Protocol):
    name: str

    def render(self, document: InventoryDocument) -> str: ...


class PydanticSerializer:
    """Composes the typed models and lets pydantic emit the JSON."""
    name = "pydantic"

    def build_model(self, document: InventoryDocument) -> InventoryDocumentModel:
        entries = []
        for section in document.databases:
            groups = {
                group: {key: cat.model_dump() for key, cat in cats.items()}
                for group, cats in section.groups.items()
            }
            entries.append(DatabaseInventoryEntry(
                database=section.database,
                generated=section.generated,
                inventory=DatabaseInventory(**groups, summary=InventorySummary(**section.summary)),
            ))
        return InventoryDocumentModel(
            target=document.target,
            generated=document.generated,
            database_count=document.database_count,
            databases=entries,
            instance_summary=InstanceSummary(**document.instance_summary),
        )

    def render(self, document: InventoryDocument) -> str:
        try:
            model = self.build_model(document)
        except ValidationError as e:
            raise DegradedSerialization(f"Structured inventory document rejected: {e}") from e
        return model.model_dump_json(indent=2)


class ManualSerializer:
    """Assembles the same structure from plain dicts."""
    name = "manual"

    @staticmethod
    def _category(cat: InventoryCategory) -> dict:
        items = [dict(item) for item in cat.items]
        return {"count": len(items), "items": items}

    def build_dict(self, document: InventoryDocument) -> dict:
        databases = []
        for section in document.databases:
            inventory = {
                group: {key: self._category(cat) for key, cat in section.groups[group].items()}
                for group in GROUP_KEYS
            }
            inventory["summary"] = dict(section.summary)
            databases.append({
                "database": section.database,
                "generated": section.generated,
                "inventory": inventory,
            })
        return {
            "target": document.target,
            "generated": document.generated,
            "database_count": document.database_count,
            "databases": databases,
            "instance_summary": dict(document.instance_summary),
        }

    def render(self, document: InventoryDocument) -> str:
        return json.dumps(self.build_dict(document), indent=2)


SERIALIZERS: dict[str, type] = {"pydantic": PydanticSerializer, "manual": ManualSerializer}


def serialize_document(document: InventoryDocument, serializer: str = "pydantic") -> str:
    if serializer not in SERIALIZERS:
        raise ValueError(f"Unknown inventory serializer '{serializer}'. Choose from {sorted(SERIALIZERS)}")
    renderer: Serializer = SERIALIZERS[serializer]()
    try:
        return renderer.render(document)
    except DegradedSerialization as e:
        logger.warning("%s; falling back to manual JSON assembly", e)
        return ManualSerializer().render(document)


# ── Text renderers ───────────────────────────────────────────────────────────

def render_summary_text(catalog: InventoryCatalog) -> str:
    lines = [
        f"DATABASE: {catalog.database}",
        f"Generated: {catalog.generated.strftime(TIMESTAMP_FORMAT)}",
        RULE,
    ]
    for i, (group, title, _) in enumerate(GROUPS):
        if i:
            lines.append("")
        lines.append(f"{title}:")
        for spec in CATEGORIES:
            if spec.group == group:
                lines.append(f"  {spec.label}: {catalog.count(spec.key)}")
    lines += [RULE, "", ""]
    return "\n".join(lines)


def _table(fields: tuple[str, ...], items: list[dict[str, str]]) -> list[str]:
    headers = [f.upper() for f in fields]
    widths = [max([len(h)] + [len(item.get(f, "")) for item in items]) for h, f in zip(headers, fields)]
    lines = ["  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip()]
    lines.append("  ".join("-" * w for w in widths))
    for item in items:
        lines.append("  ".join(item.get(f, "").ljust(w) for f, w in zip(fields, widths)).rstrip())
    return lines


def render_detail_text(catalog: InventoryCatalog) -> str:
    lines = [
        RULE,
        f"DB2 INVENTORY ANALYSIS FOR DATABASE: {catalog.database}",
        f"Generated: {catalog.generated.strftime(TIMESTAMP_FORMAT)}",
        RULE,
        "",
    ]
    for spec in CATEGORIES:
        if spec.key not in catalog.categories:
            continue
        cat = catalog.categories[spec.key]
        lines.append(f"{spec.label.upper()} ({cat.count}):")
        if spec.key in catalog.failed:
            lines.append("  (query failed)")
        elif cat.items:
            lines.extend(_table(spec.fields, cat.items))
        else:
            lines.append("  0 record(s) selected.")
        lines.append("")
    return "\n".join(lines) + "\n"


# ── Files ────────────────────────────────────────────────────────────────────

def default_inventory_paths(output_dir: str, remote: bool, stamp: str) -> tuple[Path, Path, Path]:
    suffix = "_remote" if remote else ""
    base = Path(output_dir or ".")
    return (
        base / f"db2_inventory_detail{suffix}_{stamp}.txt",
        base / f"db2_inventory_summary{suffix}_{stamp}.txt",
        base / f"db2_inventory{suffix}_{stamp}.json",
    )


@dataclass
class InventoryArtifacts:
    """Appends per-database text and rewrites the JSON document after each database."""
    target: str
    detail_path: Path
    summary_path: Path
    json_path: Path
    serializer: str = "pydantic"
    catalogs: list[InventoryCatalog] = field(default_factory=list)

    def add(self, catalog: InventoryCatalog) -> None:
        self.catalogs.append(catalog)
        with open(self.detail_path, "a", encoding="utf-8") as f:
            f.write(render_detail_text(catalog))
        with open(self.summary_path, "a", encoding="utf-8") as f:
            f.write(render_summary_text(catalog))
        self.write_json()

    def write_json(self) -> None:
        document = build_inventory_document(self.target, self.catalogs)
        self.json_path.write_text(serialize_document(document, self.serializer) + "\n", encoding="utf-8")
        logger.info("Inventory JSON updated: %s (%d database(s))", self.json_path, document.database_count)
