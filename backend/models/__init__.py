from models.inventory import InventoryCategory, InventoryCatalog, InventoryDocumentModel  # noqa: F401
from models.precheck import (  # noqa: F401
    CheckStatus, CheckOutcome, ConnectionMode, Target, RunCounts, Readiness,
    SizingEstimate, DatabaseRun, AggregateReport,
)
