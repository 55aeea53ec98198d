"""Settlement engine package."""

from profit_pilot.engine.settlement import (
    MAX_PERCENTAGE,
    SettlementEngine,
    partner_share,
)

__all__ = ["MAX_PERCENTAGE", "SettlementEngine", "partner_share"]
