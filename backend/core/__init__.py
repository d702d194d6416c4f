from core.aggregator import RunAggregator, build_report  # noqa: F401
from core.checks import CHECK_REGISTRY  # noqa: F401
from core.gateway import QueryGateway  # noqa: F401
from core.orchestrator import resolve_targets, run_precheck  # noqa: F401
