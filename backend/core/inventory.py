"""
Inventory collector: a census of user objects in one database.

Each category issues one count query and one detail query against the system
catalog, skipping system schemas. A category whose queries fail is recorded
as empty and listed in InventoryCatalog.failed; the remaining categories
still run.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from core.context import CheckContext
from core.errors import ParseError, QueryConnectionError
from core.policy import PrecheckPolicy
from core.results import EmptyResult, parse_count
from models.inventory import InventoryCatalog, InventoryCategory
from models.precheck import CheckOutcome, CheckStatus

logger = logging.getLogger(__name__)

# (group key, summary section title, outcome recommendation)
GROUPS = (
    ("basic_objects", "BASIC OBJECTS", "Database objects inventory"),
    ("constraints", "CONSTRAINTS", "Database constraints inventory"),
    ("security_features", "SECURITY FEATURES", "Security features inventory"),
    ("data_complexity", "DATA COMPLEXITY", "Data complexity inventory"),
    ("storage_complexity", "STORAGE COMPLEXITY", "Storage complexity inventory"),
    ("advanced_features", "ADVANCED FEATURES", "Advanced features inventory"),
)
GROUP_KEYS = tuple(g[0] for g in GROUPS)

SCHEMA_NAME = ("schema", "name")
DEPENDENT = ("schema", "name", "table_schema", "table_name")
CONSTRAINT = ("name", "schema", "table_name")
COLUMN = ("schema", "table_name", "column_name")
TABLESPACE = ("name", "type")


@dataclass(frozen=True)
class CategorySpec:
    key: str
    outcome: str
    label: str
    group: str
    source: str
    columns: tuple[str, ...]
    fields: tuple[str, ...]
    where: str = ""
    schema_column: Optional[str] = None
    extra_prefixes: tuple[str, ...] = ()
    distinct: bool = False
    group_by: Optional[str] = None

    def where_clause(self, policy: PrecheckPolicy) -> str:
        parts = [self.where] if self.where else []
        if self.schema_column:
            parts.append(policy.not_system_sql(self.schema_column, self.extra_prefixes))
        return f" WHERE {' AND '.join(parts)}" if parts else ""

    def detail_sql(self, policy: PrecheckPolicy) -> str:
        select = "SELECT DISTINCT" if self.distinct else "SELECT"
        sql = f"{select} {', '.join(self.columns)} FROM {self.source}{self.where_clause(policy)}"
        if self.group_by:
            sql += f" GROUP BY {self.group_by}"
        return sql

    def count_sql(self, policy: PrecheckPolicy) -> str:
        if self.distinct or self.group_by:
            return f"SELECT COUNT(*) FROM ({self.detail_sql(policy)}) AS T"
        return f"SELECT COUNT(*) FROM {self.source}{self.where_clause(policy)}"


def _columns(typename_clause: str, key: str, outcome: str, label: str, extra: tuple[str, ...] = (),
             fields: tuple[str, ...] = COLUMN) -> CategorySpec:
    return CategorySpec(
        key, outcome, label, "data_complexity", "SYSCAT.COLUMNS",
        ("TABSCHEMA", "TABNAME", "COLNAME") + extra, fields,
        where=typename_clause, schema_column="TABSCHEMA",
    )


CATEGORIES: tuple[CategorySpec, ...] = (
    # basic objects
    CategorySpec("tables", "INVENTORY_TABLES", "Tables", "basic_objects",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="TYPE = 'T'", schema_column="TABSCHEMA"),
    CategorySpec("views", "INVENTORY_VIEWS", "Views", "basic_objects",
                 "SYSCAT.VIEWS", ("VIEWSCHEMA", "VIEWNAME"), SCHEMA_NAME,
                 schema_column="VIEWSCHEMA"),
    CategorySpec("materialized_query_tables", "INVENTORY_MQTS", "Materialized Query Tables", "basic_objects",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="TYPE = 'S'", schema_column="TABSCHEMA"),
    CategorySpec("indexes", "INVENTORY_INDEXES", "Indexes", "basic_objects",
                 "SYSCAT.INDEXES", ("INDSCHEMA", "INDNAME", "TABSCHEMA", "TABNAME"), DEPENDENT,
                 schema_column="TABSCHEMA"),
    CategorySpec("triggers", "INVENTORY_TRIGGERS", "Triggers", "basic_objects",
                 "SYSCAT.TRIGGERS", ("TRIGSCHEMA", "TRIGNAME", "TABSCHEMA", "TABNAME"), DEPENDENT,
                 schema_column="TABSCHEMA"),
    CategorySpec("functions", "INVENTORY_FUNCTIONS", "Functions", "basic_objects",
                 "SYSCAT.ROUTINES", ("ROUTINESCHEMA", "ROUTINENAME"), SCHEMA_NAME,
                 where="ROUTINETYPE = 'F'", schema_column="ROUTINESCHEMA"),
    CategorySpec("procedures", "INVENTORY_PROCEDURES", "Procedures", "basic_objects",
                 "SYSCAT.ROUTINES", ("ROUTINESCHEMA", "ROUTINENAME"), SCHEMA_NAME,
                 where="ROUTINETYPE = 'P'", schema_column="ROUTINESCHEMA", extra_prefixes=("SQLJ",)),
    CategorySpec("methods", "INVENTORY_METHODS", "Methods", "basic_objects",
                 "SYSCAT.ROUTINES", ("ROUTINESCHEMA", "ROUTINENAME"), SCHEMA_NAME,
                 where="ROUTINETYPE = 'M'", schema_column="ROUTINESCHEMA"),
    CategorySpec("sequences", "INVENTORY_SEQUENCES", "Sequences", "basic_objects",
                 "SYSCAT.SEQUENCES", ("SEQSCHEMA", "SEQNAME"), SCHEMA_NAME,
                 schema_column="SEQSCHEMA"),
    CategorySpec("schemas", "INVENTORY_SCHEMAS", "Schemas", "basic_objects",
                 "SYSCAT.SCHEMATA", ("SCHEMANAME",), ("name",),
                 schema_column="SCHEMANAME", extra_prefixes=("SQLJ", "NULLID")),
    # constraints
    CategorySpec("check_constraints", "INVENTORY_CHECKS", "Check Constraints", "constraints",
                 "SYSCAT.CHECKS", ("CONSTNAME", "TABSCHEMA", "TABNAME"), CONSTRAINT,
                 schema_column="TABSCHEMA"),
    CategorySpec("primary_keys", "INVENTORY_PKS", "Primary Keys", "constraints",
                 "SYSCAT.TABCONST", ("CONSTNAME", "TABSCHEMA", "TABNAME"), CONSTRAINT,
                 where="TYPE = 'P'", schema_column="TABSCHEMA"),
    CategorySpec("foreign_keys", "INVENTORY_FKS", "Foreign Keys", "constraints",
                 "SYSCAT.REFERENCES", ("CONSTNAME", "TABSCHEMA", "TABNAME", "REFTABSCHEMA", "REFTABNAME"),
                 ("name", "schema", "table_name", "ref_schema", "ref_table"),
                 schema_column="TABSCHEMA"),
    # security features
    CategorySpec("lbac_security_labels", "INVENTORY_LBAC_LABELS", "LBAC Security Labels", "security_features",
                 "SYSCAT.SECURITYLABELS", ("SECLABELNAME",), ("name",)),
    CategorySpec("lbac_security_policies", "INVENTORY_LBAC_POLICIES", "LBAC Security Policies", "security_features",
                 "SYSCAT.SECURITYPOLICIES", ("SECPOLICYNAME",), ("name",)),
    CategorySpec("rcac_row_access_tables", "INVENTORY_RCAC_ROW", "RCAC Row-Access Tables", "security_features",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="ROWACCESSCONTROL = 'Y'"),
    CategorySpec("rcac_column_access_tables", "INVENTORY_RCAC_COL", "RCAC Column-Access Tables", "security_features",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="COLACCESSCONTROL = 'Y'"),
    CategorySpec("row_permissions", "INVENTORY_ROW_PERMISSIONS", "Row Permissions", "security_features",
                 "SYSCAT.CONTROLS", ("CONTROLSCHEMA", "CONTROLNAME", "TABSCHEMA", "TABNAME"), DEPENDENT,
                 where="CONTROLTYPE = 'R'"),
    CategorySpec("column_masks", "INVENTORY_COLUMN_MASKS", "Column Masks", "security_features",
                 "SYSCAT.CONTROLS", ("CONTROLSCHEMA", "CONTROLNAME", "TABSCHEMA", "TABNAME"), DEPENDENT,
                 where="CONTROLTYPE = 'C'"),
    CategorySpec("roles", "INVENTORY_ROLES", "Roles", "security_features",
                 "SYSCAT.ROLES", ("ROLENAME",), ("name",),
                 schema_column="ROLENAME"),
    CategorySpec("grants", "INVENTORY_GRANTS", "Grants", "security_features",
                 "SYSCAT.TABAUTH", ("GRANTEE", "COUNT(*) AS GRANT_COUNT"), ("grantee", "grant_count"),
                 schema_column="TABSCHEMA", group_by="GRANTEE"),
    # data complexity
    CategorySpec("aliases", "INVENTORY_ALIASES", "Aliases", "data_complexity",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="TYPE = 'A'", schema_column="TABSCHEMA"),
    CategorySpec("data_types", "INVENTORY_DATATYPES", "Data Types", "data_complexity",
                 "SYSCAT.COLUMNS", ("TYPESCHEMA", "TYPENAME"), ("type_schema", "type_name"),
                 schema_column="TABSCHEMA", distinct=True),
    _columns("TYPENAME = 'BLOB'", "blob_columns", "INVENTORY_BLOB_COLS", "BLOB Columns"),
    _columns("TYPENAME = 'CLOB'", "clob_columns", "INVENTORY_CLOB_COLS", "CLOB Columns"),
    _columns("TYPENAME = 'DBCLOB'", "dbclob_columns", "INVENTORY_DBCLOB_COLS", "DBCLOB Columns"),
    _columns("TYPENAME = 'XML'", "xml_columns", "INVENTORY_XML_COLS", "XML Columns"),
    _columns("TYPENAME IN ('BLOB', 'CLOB', 'DBCLOB') AND LENGTH < 32768", "inline_lob_columns",
             "INVENTORY_INLINE_LOBS", "Inline LOB Columns", extra=("TYPENAME", "LENGTH"),
             fields=COLUMN + ("data_type", "length")),
    _columns("TYPENAME = 'XML' AND LENGTH < 32768", "inline_xml_columns",
             "INVENTORY_INLINE_XML", "Inline XML Columns", extra=("LENGTH",),
             fields=COLUMN + ("length",)),
    # storage complexity
    CategorySpec("sms_tablespaces", "INVENTORY_SMS_TBSP", "SMS Tablespaces", "storage_complexity",
                 "SYSCAT.TABLESPACES", ("TBSPACE", "TBSPACETYPE"), TABLESPACE,
                 where="TBSPACETYPE = 'S'", schema_column="TBSPACE"),
    CategorySpec("dms_tablespaces", "INVENTORY_DMS_TBSP", "DMS Tablespaces", "storage_complexity",
                 "SYSCAT.TABLESPACES", ("TBSPACE", "TBSPACETYPE"), TABLESPACE,
                 where="TBSPACETYPE = 'D'", schema_column="TBSPACE"),
    CategorySpec("storage_groups", "INVENTORY_STOGROUPS", "Storage Groups", "storage_complexity",
                 "SYSCAT.STOGROUPS", ("SGNAME",), ("name",),
                 schema_column="SGNAME"),
    # advanced features
    CategorySpec("column_organized_tables", "INVENTORY_COL_TABLES", "Column-Organized Tables", "advanced_features",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="SUBSTR(PROPERTY, 20, 1) = 'Y'", schema_column="TABSCHEMA"),
    CategorySpec("shadow_tables", "INVENTORY_SHADOW_TABLES", "Shadow Tables", "advanced_features",
                 "SYSCAT.TABLES", ("TABSCHEMA", "TABNAME"), SCHEMA_NAME,
                 where="SUBSTR(PROPERTY, 23, 1) = 'Y'", schema_column="TABSCHEMA"),
)

CATEGORIES_BY_KEY = {c.key: c for c in CATEGORIES}
BASIC_OBJECT_KEYS = tuple(c.key for c in CATEGORIES if c.group == "basic_objects")


def collect_category(ctx: CheckContext, spec: CategorySpec) -> InventoryCategory:
    """Count and itemize one category. Raises on query or parse failure."""
    expected = parse_count(ctx.query(spec.count_sql(ctx.policy))).value
    result = ctx.query(spec.detail_sql(ctx.policy))
    rows = () if isinstance(result, EmptyResult) else result.rows
    items = [dict(zip(spec.fields, row)) for row in rows]
    if expected != len(items):
        logger.debug("%s: count query returned %d, detail query %d row(s)", spec.key, expected, len(items))
    return InventoryCategory(count=len(items), items=items)


def collect_inventory(ctx: CheckContext, categories: tuple[CategorySpec, ...] = CATEGORIES) -> InventoryCatalog:
    logger.info("Inventory analysis for database: %s", ctx.database)
    catalog = InventoryCatalog(database=ctx.database)
    for spec in categories:
        logger.info("Analyzing %s...", spec.label.lower())
        try:
            catalog.categories[spec.key] = collect_category(ctx, spec)
        except (QueryConnectionError, ParseError) as e:
            logger.warning("Inventory category %s unavailable for %s: %s", spec.key, ctx.database, e)
            catalog.categories[spec.key] = InventoryCategory()
            catalog.failed.append(spec.key)
    logger.info("Inventory analysis completed for database: %s", ctx.database)
    return catalog


def inventory_outcomes(catalog: InventoryCatalog) -> list[CheckOutcome]:
    recs = {key: rec for key, _, rec in GROUPS}
    outcomes = []
    for spec in CATEGORIES:
        if spec.key not in catalog.categories:
            continue
        detail = f"{spec.label}: {catalog.count(spec.key)}"
        if spec.key in catalog.failed:
            detail += " (query failed)"
        outcomes.append(CheckOutcome(
            name=spec.outcome, status=CheckStatus.INFO, detail=detail, recommendation=recs[spec.group],
        ))
    return outcomes
