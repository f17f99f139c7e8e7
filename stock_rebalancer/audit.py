"""Decision audit trail shared by the engine components."""

from __future__ import annotations

import json
import logging
import uuid
from collections import deque
from typing import Any, Optional

from botocore.exceptions import ClientError

from stock_rebalancer.models.stock import Decision

logger = logging.getLogger(__name__)

# Recent decisions kept in memory; the table, when given, holds the full trail
MAX_DECISIONS_IN_MEMORY = 1000


class DecisionLog:
    """Keeps decisions in memory and mirrors them to DynamoDB when a table is given."""

    def __init__(self, table: Optional[Any] = None, max_entries: int = MAX_DECISIONS_IN_MEMORY):
        self._table = table
        self._decisions: deque[Decision] = deque(maxlen=max_entries)

    def record(
        self,
        component: str,
        decision_type: str,
        input_data: dict,
        output_data: dict,
        reasoning: str,
    ) -> Decision:
        decision = Decision(
            decision_id=f"DEC-{uuid.uuid4().hex[:8].upper()}",
            component=component,
            decision_type=decision_type,
            input_data=input_data,
            output_data=output_data,
            reasoning=reasoning,
        )
        self._decisions.append(decision)
        logger.info("[%s] %s: %s", component, decision_type, reasoning)

        if self._table is None:
            return decision

        # Audit write only; a failure here must not fail the analysis
        try:
            self._table.put_item(
                Item={
                    "decision_id": decision.decision_id,
                    "component": decision.component,
                    "decision_type": decision.decision_type,
                    "input_data": json.dumps(input_data, default=str),
                    "output_data": json.dumps(output_data, default=str),
                    "reasoning": reasoning,
                    "timestamp": decision.timestamp,
                }
            )
        except ClientError as e:
            logger.warning("Decision log write failed: %s", e)

        return decision

    def get_decisions(
        self, component: Optional[str] = None, decision_type: Optional[str] = None
    ) -> list[Decision]:
        decisions = list(self._decisions)
        if component:
            decisions = [d for d in decisions if d.component == component]
        if decision_type:
            decisions = [d for d in decisions if d.decision_type == decision_type]
        return list(decisions)
