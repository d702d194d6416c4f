"""Runs the registered checks against one target, in order."""
import logging
from typing import Callable, Optional, Sequence

from core.aggregator import RunAggregator
from core.checks import CHECK_REGISTRY, CheckSpec
from core.context import CheckContext
from core.errors import FatalEnvironmentError
from models.precheck import CheckOutcome, CheckStatus

logger = logging.getLogger(__name__)


def run_checks(
    ctx: CheckContext,
    aggregator: RunAggregator,
    registry: Sequence[CheckSpec] = CHECK_REGISTRY,
    on_outcome: Optional[Callable[[CheckOutcome], None]] = None,
) -> None:
    for spec in registry:
        logger.info("Checking %s for %s", spec.name, ctx.database)
        try:
            outcomes = spec.func(ctx)
        except FatalEnvironmentError:
            raise
        except Exception as e:
            logger.exception("Check %s raised for %s", spec.name, ctx.database)
            outcomes = [CheckOutcome(
                name=spec.name,
                status=CheckStatus.FAIL,
                detail=f"Check could not complete: {e}",
                recommendation="Review the report log and rerun the check",
            )]
        for outcome in outcomes:
            aggregator.add(outcome)
            if on_outcome:
                on_outcome(outcome)
