"""Error taxonomy for the rebalancing engine.

Every error keeps the context needed by the caller to act on it
(entity id, attempted operation, current state).
"""

from __future__ import annotations

from typing import Optional


class RebalancerError(Exception):
    """Base class for all engine errors."""
    pass


class DataFetchError(RebalancerError):
    """The external store could not be read; the whole run is aborted."""

    def __init__(self, collection: str, cause: Optional[BaseException] = None):
        self.collection = collection
        self.cause = cause
        message = f"Failed to read '{collection}' from the stock store"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class InvalidStockRange(RebalancerError):
    """A stock entry has inverted thresholds or a negative quantity."""

    def __init__(
        self,
        entry_id: str,
        shop_id: str,
        article_id: str,
        current: int,
        min_stock: int,
        max_stock: int,
    ):
        self.entry_id = entry_id
        self.shop_id = shop_id
        self.article_id = article_id
        self.current = current
        self.min_stock = min_stock
        self.max_stock = max_stock
        if min_stock > max_stock:
            detail = f"min ({min_stock}) > max ({max_stock})"
        else:
            detail = f"negative quantity (current={current}, min={min_stock}, max={max_stock})"
        self.detail = detail
        super().__init__(
            f"Invalid stock range for entry {entry_id} "
            f"(shop={shop_id}, article={article_id}): {detail}"
        )


class InvalidTransition(RebalancerError):
    """A lifecycle command was issued from a state that does not allow it."""

    def __init__(self, proposal_id: str, current: str, command: str, requested: Optional[str] = None):
        self.proposal_id = proposal_id
        self.current = current
        self.command = command
        self.requested = requested
        target = f" -> {requested}" if requested else ""
        super().__init__(
            f"Cannot {command} proposal {proposal_id}: current status is '{current}'{target}"
        )


class NotFound(RebalancerError):
    """An operation referenced an unknown shop, article or proposal."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class PersistenceError(RebalancerError):
    """Writing a run's results failed; whatever was already written is rolled back."""

    def __init__(self, run_id: str, operation: str, cause: Optional[BaseException] = None):
        self.run_id = run_id
        self.operation = operation
        self.cause = cause
        message = f"Run {run_id}: {operation} failed, nothing committed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)
