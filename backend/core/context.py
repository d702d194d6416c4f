"""Per-target execution context handed to every check, estimator and collector."""
import shutil
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

from core.policy import PrecheckPolicy
from core.results import QueryResult
from models.precheck import ConnectionMode, Target


class Gateway(Protocol):
    def execute(self, target: Target, statement: str, with_headers: bool = False) -> QueryResult: ...

    def call(self, target: Target, procedure: str, params: tuple) -> QueryResult: ...

    def check_driver(self, target: Target) -> None: ...


@dataclass
class CheckContext:
    gateway: Gateway
    target: Target
    policy: PrecheckPolicy = field(default_factory=PrecheckPolicy)
    which: Callable[[str], Optional[str]] = shutil.which

    @property
    def database(self) -> str:
        return self.target.database

    @property
    def remote(self) -> bool:
        return self.target.mode == ConnectionMode.REMOTE

    def query(self, statement: str, with_headers: bool = False) -> QueryResult:
        return self.gateway.execute(self.target, statement, with_headers)

    def call(self, procedure: str, params: tuple) -> QueryResult:
        return self.gateway.call(self.target, procedure, params)
