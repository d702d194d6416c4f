"""
Policy data for the checks and the inventory: which schemas count as system
schemas and which federation wrapper libraries the managed service accepts.
"""
from dataclasses import dataclass

from config import Settings

DEFAULT_NON_FENCED_EXCLUDED_SCHEMAS = (
    "SQLJ", "SYSCAT", "SYSFUN", "SYSIBM", "SYSIBMADM", "SYSPROC", "SYSTOOLS",
)
DEFAULT_FEDERATION_ALLOWED_LIBRARIES = ("libdb2drda.so", "libdb2rcodbc.so")
DEFAULT_SYSTEM_SCHEMA_PREFIXES = ("SYS",)


@dataclass(frozen=True)
class PrecheckPolicy:
    non_fenced_excluded_schemas: tuple[str, ...] = DEFAULT_NON_FENCED_EXCLUDED_SCHEMAS
    federation_allowed_libraries: tuple[str, ...] = DEFAULT_FEDERATION_ALLOWED_LIBRARIES
    system_schema_prefixes: tuple[str, ...] = DEFAULT_SYSTEM_SCHEMA_PREFIXES

    @classmethod
    def from_settings(cls, s: Settings) -> "PrecheckPolicy":
        return cls(
            non_fenced_excluded_schemas=tuple(s.non_fenced_excluded_schema_list) or DEFAULT_NON_FENCED_EXCLUDED_SCHEMAS,
            federation_allowed_libraries=tuple(s.federation_allowed_library_list) or DEFAULT_FEDERATION_ALLOWED_LIBRARIES,
            system_schema_prefixes=tuple(s.system_schema_prefix_list) or DEFAULT_SYSTEM_SCHEMA_PREFIXES,
        )

    def excluded_schema_list_sql(self) -> str:
        """`'SQLJ','SYSCAT',...` for an IN (...) clause."""
        return ",".join(_quote(s) for s in self.non_fenced_excluded_schemas)

    def not_system_sql(self, column: str, extra_prefixes: tuple[str, ...] = ()) -> str:
        """`COL NOT LIKE 'SYS%' AND ...` for every system prefix plus extras."""
        prefixes = self.system_schema_prefixes + tuple(p for p in extra_prefixes if p not in self.system_schema_prefixes)
        return " AND ".join(f"{column} NOT LIKE {_quote(p + '%')}" for p in prefixes)

    def is_allowed_library(self, library: str) -> bool:
        name = library.strip().rsplit("/", 1)[-1]
        return name in self.federation_allowed_libraries


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"
