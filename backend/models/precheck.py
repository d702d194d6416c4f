"""Pydantic schemas for check outcomes, database runs and the aggregate report."""
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.engine import URL, make_url

from models.inventory import InventoryCatalog


class CheckStatus(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    WARNING = "WARNING"
    INFO = "INFO"


class CheckOutcome(BaseModel):
    """One classified result of a single diagnostic check."""
    model_config = ConfigDict(frozen=True)

    name: str
    status: CheckStatus
    detail: str
    recommendation: Optional[str] = None

    @model_validator(mode="after")
    def _recommendation_required(self):
        if self.status != CheckStatus.PASS and not self.recommendation:
            raise ValueError(f"{self.name}: a {self.status.value} outcome needs a recommendation")
        return self


class ConnectionMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class Target(BaseModel):
    database: str
    mode: ConnectionMode
    instance: Optional[str] = None          # local only
    user: Optional[str] = None              # remote only
    password: Optional[str] = Field(None, repr=False, exclude=True)
    host: Optional[str] = None
    port: Optional[int] = None
    url: Optional[str] = Field(None, repr=False, exclude=True)   # explicit override

    @property
    def label(self) -> str:
        if self.mode == ConnectionMode.REMOTE:
            return f"{self.database} (Remote Connection)"
        return f"{self.database} (Instance: {self.instance})"

    def get_sqlalchemy_url(self, dialect: str = "db2+ibm_db") -> URL:
        if self.url:
            return make_url(self.url)
        if self.mode == ConnectionMode.REMOTE:
            return URL.create(
                dialect,
                username=self.user,
                password=self.password,
                host=self.host or None,
                port=self.port,
                database=self.database,
            )
        # Locally catalogued alias, authenticated as the instance owner
        return URL.create(dialect, database=self.database)


class RunCounts(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    warning: int = 0
    info: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: Iterable[CheckOutcome]) -> "RunCounts":
        counts = cls()
        for o in outcomes:
            counts = counts.tally(o.status)
        return counts

    def tally(self, status: CheckStatus) -> "RunCounts":
        data = self.model_dump()
        if status == CheckStatus.INFO:
            data["info"] += 1
        else:
            data["total"] += 1
            key = {"PASS": "passed", "FAIL": "failed", "WARNING": "warning"}[status.value]
            data[key] += 1
        return RunCounts(**data)

    def __add__(self, other: "RunCounts") -> "RunCounts":
        return RunCounts(
            total=self.total + other.total,
            passed=self.passed + other.passed,
            failed=self.failed + other.failed,
            warning=self.warning + other.warning,
            info=self.info + other.info,
        )


class Readiness(str, Enum):
    READY = "READY"
    REVIEW_REQUIRED = "REVIEW REQUIRED"
    NOT_READY = "NOT READY"

    @property
    def rank(self) -> int:
        return {"READY": 0, "REVIEW REQUIRED": 1, "NOT READY": 2}[self.value]


class SizingEstimate(BaseModel):
    log_space_kb: int
    db_size_kb: Optional[int] = None     # None = could not be determined
    base_kb: Optional[int] = None
    growth_kb: Optional[int] = None
    recommended_kb: Optional[int] = None
    tier: str


class DatabaseRun(BaseModel):
    model_config = ConfigDict(frozen=True)

    target: Target
    outcomes: list[CheckOutcome]
    counts: RunCounts
    inventory: Optional[InventoryCatalog] = None
    readiness: Readiness
    started_at: datetime
    finished_at: datetime

    @model_validator(mode="after")
    def _counts_match_outcomes(self):
        expected = RunCounts.from_outcomes(self.outcomes)
        if self.counts != expected:
            raise ValueError(f"counts {self.counts} do not match the outcomes ({expected})")
        return self


class AggregateReport(BaseModel):
    mode: ConnectionMode
    instance: Optional[str] = None
    runs: list[DatabaseRun] = Field(default_factory=list)
    totals: RunCounts = Field(default_factory=RunCounts)
    overall_readiness: Readiness = Readiness.READY
    alias_hints: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=datetime.now)

    @property
    def exit_code(self) -> int:
        return 1 if self.totals.failed > 0 else 0
