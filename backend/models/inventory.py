"""Pydantic schemas for the per-database object inventory and its JSON document."""
from datetime import datetime
from pydantic import BaseModel, Field, model_validator


class InventoryCategory(BaseModel):
    count: int = 0
    items: list[dict[str, str]] = Field(default_factory=list)

    @model_validator(mode="after")
    def _count_matches_items(self):
        if self.count != len(self.items):
            raise ValueError(f"count {self.count} does not match {len(self.items)} item(s)")
        return self


class InventoryCatalog(BaseModel):
    """Object census for one database, keyed by category in collection order."""
    database: str
    generated: datetime = Field(default_factory=datetime.now)
    categories: dict[str, InventoryCategory] = Field(default_factory=dict)
    failed: list[str] = Field(default_factory=list)   # categories whose queries failed

    def count(self, key: str) -> int:
        cat = self.categories.get(key)
        return cat.count if cat else 0


# ── JSON document (structured serializer) ────────────────────────────────────

class InventorySummary(BaseModel):
    total_basic_objects: int = 0
    total_constraints: int = 0
    total_security_features: int = 0
    total_data_complexity: int = 0
    total_storage_complexity: int = 0
    total_advanced_features: int = 0
    total_schemas: int = 0


class DatabaseInventory(BaseModel):
    basic_objects: dict[str, InventoryCategory] = Field(default_factory=dict)
    constraints: dict[str, InventoryCategory] = Field(default_factory=dict)
    security_features: dict[str, InventoryCategory] = Field(default_factory=dict)
    data_complexity: dict[str, InventoryCategory] = Field(default_factory=dict)
    storage_complexity: dict[str, InventoryCategory] = Field(default_factory=dict)
    advanced_features: dict[str, InventoryCategory] = Field(default_factory=dict)
    summary: InventorySummary


class DatabaseInventoryEntry(BaseModel):
    database: str
    generated: str
    inventory: DatabaseInventory


class InstanceSummary(InventorySummary):
    total_databases: int = 0


class InventoryDocumentModel(BaseModel):
    target: str
    generated: str
    database_count: int
    databases: list[DatabaseInventoryEntry]
    instance_summary: InstanceSummary
