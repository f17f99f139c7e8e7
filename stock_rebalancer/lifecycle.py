"""Proposal Lifecycle - state machine for transfer proposals.

proposed -> validated -> in_transit -> received
proposed | validated -> rejected
received and rejected are terminal.

Commands go through a proposal store whose compare_and_set() applies a
status change only if the proposal is still in the expected state, so two
racing commands on the same proposal cannot both apply.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Optional, Protocol, Union

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from stock_rebalancer.audit import DecisionLog
from stock_rebalancer.errors import DataFetchError, InvalidTransition, NotFound
from stock_rebalancer.models.stock import LifecycleCommand, ProposalStatus, TransferProposal

logger = logging.getLogger(__name__)

# command -> (allowed source states, target state)
TRANSITIONS: dict[LifecycleCommand, tuple[frozenset[ProposalStatus], ProposalStatus]] = {
    LifecycleCommand.APPROVE: (
        frozenset({ProposalStatus.PROPOSED}),
        ProposalStatus.VALIDATED,
    ),
    LifecycleCommand.REJECT: (
        frozenset({ProposalStatus.PROPOSED, ProposalStatus.VALIDATED}),
        ProposalStatus.REJECTED,
    ),
    LifecycleCommand.MARK_IN_TRANSIT: (
        frozenset({ProposalStatus.VALIDATED}),
        ProposalStatus.IN_TRANSIT,
    ),
    LifecycleCommand.MARK_RECEIVED: (
        frozenset({ProposalStatus.IN_TRANSIT}),
        ProposalStatus.RECEIVED,
    ),
}

TERMINAL_STATES = frozenset({ProposalStatus.RECEIVED, ProposalStatus.REJECTED})


def allowed_commands(status: ProposalStatus) -> list[LifecycleCommand]:
    return [cmd for cmd, (sources, _) in TRANSITIONS.items() if status in sources]


class ProposalStore(Protocol):
    def add(self, proposal: TransferProposal) -> None: ...

    def add_many(self, proposals: list[TransferProposal]) -> None: ...

    def remove_many(self, proposal_ids: list[str]) -> None: ...

    def get(self, proposal_id: str) -> TransferProposal: ...

    def list(self, status: Optional[ProposalStatus] = None) -> list[TransferProposal]: ...

    def compare_and_set(
        self,
        proposal_id: str,
        expected: ProposalStatus,
        new: ProposalStatus,
        updated_at: str,
    ) -> bool: ...


class InMemoryProposalStore:
    """Process-local proposal store with one lock per proposal.

    Proposals are copied on the way in and out; the only way to change a
    stored status is compare_and_set().
    """

    def __init__(self) -> None:
        self._proposals: dict[str, TransferProposal] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._master_lock = threading.Lock()

    def _lock_for(self, proposal_id: str) -> threading.Lock:
        with self._master_lock:
            if proposal_id not in self._locks:
                self._locks[proposal_id] = threading.Lock()
            return self._locks[proposal_id]

    def add(self, proposal: TransferProposal) -> None:
        with self._lock_for(proposal.proposal_id):
            self._proposals[proposal.proposal_id] = replace(proposal)

    def add_many(self, proposals: list[TransferProposal]) -> None:
        with self._master_lock:
            self._proposals.update({p.proposal_id: replace(p) for p in proposals})

    def remove_many(self, proposal_ids: list[str]) -> None:
        with self._master_lock:
            for proposal_id in proposal_ids:
                self._proposals.pop(proposal_id, None)

    def _lookup(self, proposal_id: str) -> TransferProposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise NotFound("proposal", proposal_id)
        return proposal

    def get(self, proposal_id: str) -> TransferProposal:
        return replace(self._lookup(proposal_id))

    def list(self, status: Optional[ProposalStatus] = None) -> list[TransferProposal]:
        proposals = [replace(p) for p in list(self._proposals.values())]
        if status is not None:
            proposals = [p for p in proposals if p.status == status]
        return proposals

    def compare_and_set(
        self,
        proposal_id: str,
        expected: ProposalStatus,
        new: ProposalStatus,
        updated_at: str,
    ) -> bool:
        with self._lock_for(proposal_id):
            proposal = self._lookup(proposal_id)
            if proposal.status != expected:
                return False
            self._proposals[proposal_id] = replace(proposal, status=new, updated_at=updated_at)
            return True


class DynamoDBProposalStore:
    """TransferProposals table; status changes use a conditional update."""

    def __init__(self, table: Any):
        self._table = table

    def add(self, proposal: TransferProposal) -> None:
        try:
            self._table.put_item(Item=proposal.to_item())
        except ClientError as e:
            logger.error("Proposal write failed [%s]: %s", proposal.proposal_id, e)
            raise

    def add_many(self, proposals: list[TransferProposal]) -> None:
        with self._table.batch_writer() as batch:
            for proposal in proposals:
                batch.put_item(Item=proposal.to_item())
        logger.info("%d proposals written", len(proposals))

    def remove_many(self, proposal_ids: list[str]) -> None:
        # Deleting a missing key is a no-op, so partial writes can be undone blindly
        with self._table.batch_writer() as batch:
            for proposal_id in proposal_ids:
                batch.delete_item(Key={"proposal_id": proposal_id})

    def get(self, proposal_id: str) -> TransferProposal:
        try:
            resp = self._table.get_item(Key={"proposal_id": proposal_id})
        except ClientError as e:
            raise DataFetchError("proposals", e) from e
        if "Item" not in resp:
            raise NotFound("proposal", proposal_id)
        return TransferProposal.from_item(resp["Item"])

    def list(self, status: Optional[ProposalStatus] = None) -> list[TransferProposal]:
        kwargs: dict[str, Any] = {}
        if status is not None:
            kwargs = {
                "IndexName": "StatusTimeIndex",
                "KeyConditionExpression": Key("status").eq(status.value),
            }
        items: list[dict] = []
        try:
            while True:
                resp = self._table.query(**kwargs) if status is not None else self._table.scan(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    break
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except ClientError as e:
            raise DataFetchError("proposals", e) from e
        return [TransferProposal.from_item(i) for i in items]

    def compare_and_set(
        self,
        proposal_id: str,
        expected: ProposalStatus,
        new: ProposalStatus,
        updated_at: str,
    ) -> bool:
        try:
            self._table.update_item(
                Key={"proposal_id": proposal_id},
                UpdateExpression="SET #s = :new, updated_at = :ts",
                ConditionExpression="#s = :expected",
                ExpressionAttributeNames={"#s": "status"},
                ExpressionAttributeValues={
                    ":new": new.value,
                    ":expected": expected.value,
                    ":ts": updated_at,
                },
            )
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                return False
            raise


class ProposalLifecycle:
    """Applies lifecycle commands against a proposal store."""

    COMPONENT = "ProposalLifecycle"

    def __init__(self, store: ProposalStore, decision_log: Optional[DecisionLog] = None):
        self.store = store
        self._decision_log = decision_log or DecisionLog()

    def transition(
        self, proposal_id: str, command: Union[LifecycleCommand, str]
    ) -> TransferProposal:
        """Apply a command; raise NotFound or InvalidTransition when it cannot.

        The command is checked against the status read here. If another
        command changes the proposal before the write, this one is refused.
        """
        try:
            command = LifecycleCommand(command)
        except ValueError:
            raise ValueError(f"Unknown lifecycle command: {command}") from None

        sources, target = TRANSITIONS[command]
        current = self.store.get(proposal_id).status
        if current not in sources:
            raise InvalidTransition(proposal_id, current.value, command.value, target.value)

        updated_at = datetime.utcnow().isoformat()
        if not self.store.compare_and_set(proposal_id, current, target, updated_at):
            latest = self.store.get(proposal_id)
            logger.warning(
                "Proposal %s changed during %s: now %s", proposal_id, command.value, latest.status.value
            )
            raise InvalidTransition(proposal_id, latest.status.value, command.value, target.value)

        proposal = self.store.get(proposal_id)
        self._decision_log.record(
            component=self.COMPONENT,
            decision_type=f"proposal_{command.value}",
            input_data={"proposal_id": proposal_id, "from": current.value},
            output_data={"status": target.value},
            reasoning=f"Proposal {proposal_id}: {current.value} -> {target.value}",
        )
        return proposal

    def approve(self, proposal_id: str) -> TransferProposal:
        return self.transition(proposal_id, LifecycleCommand.APPROVE)

    def reject(self, proposal_id: str) -> TransferProposal:
        return self.transition(proposal_id, LifecycleCommand.REJECT)

    def mark_in_transit(self, proposal_id: str) -> TransferProposal:
        return self.transition(proposal_id, LifecycleCommand.MARK_IN_TRANSIT)

    def mark_received(self, proposal_id: str) -> TransferProposal:
        return self.transition(proposal_id, LifecycleCommand.MARK_RECEIVED)

    def get_pending(self) -> list[TransferProposal]:
        """Proposals still awaiting a decision."""
        return self.store.list(ProposalStatus.PROPOSED)
