"""Proposal Lifecycle unit tests."""

import threading
from dataclasses import replace

import pytest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from stock_rebalancer.errors import InvalidTransition, NotFound
from stock_rebalancer.lifecycle import (
    TERMINAL_STATES,
    TRANSITIONS,
    DynamoDBProposalStore,
    InMemoryProposalStore,
    ProposalLifecycle,
    allowed_commands,
)
from stock_rebalancer.models.stock import LifecycleCommand, ProposalStatus, TransferProposal


def _proposal(proposal_id: str = "TRF-0001", status: ProposalStatus = ProposalStatus.PROPOSED) -> TransferProposal:
    return TransferProposal(
        proposal_id=proposal_id,
        article_id="A1",
        article_label="T-shirt Coton Bleu",
        source_shop_id="shop_paris",
        source_shop_name="Boutique Paris",
        destination_shop_id="shop_marseille",
        destination_shop_name="Boutique Marseille",
        quantity=20,
        reason="Overstock at Boutique Paris (+50), shortage at Boutique Marseille (-20)",
        status=status,
    )


def _create_lifecycle(*proposals) -> ProposalLifecycle:
    store = InMemoryProposalStore()
    for p in proposals or (_proposal(),):
        store.add(p)
    return ProposalLifecycle(store)


class TestTransitionTable:
    def test_every_command_has_a_rule(self):
        assert set(TRANSITIONS) == set(LifecycleCommand)

    def test_terminal_states_allow_nothing(self):
        for status in TERMINAL_STATES:
            assert allowed_commands(status) == []

    def test_proposed_allows_approve_and_reject(self):
        assert set(allowed_commands(ProposalStatus.PROPOSED)) == {
            LifecycleCommand.APPROVE, LifecycleCommand.REJECT
        }


class TestHappyPath:
    def test_full_lifecycle(self):
        lifecycle = _create_lifecycle()
        assert lifecycle.approve("TRF-0001").status == ProposalStatus.VALIDATED
        assert lifecycle.mark_in_transit("TRF-0001").status == ProposalStatus.IN_TRANSIT
        received = lifecycle.mark_received("TRF-0001")
        assert received.status == ProposalStatus.RECEIVED
        assert received.updated_at is not None

    def test_reject_from_proposed(self):
        lifecycle = _create_lifecycle()
        assert lifecycle.reject("TRF-0001").status == ProposalStatus.REJECTED

    def test_approve_then_reject_is_allowed(self):
        lifecycle = _create_lifecycle()
        lifecycle.approve("TRF-0001")
        assert lifecycle.reject("TRF-0001").status == ProposalStatus.REJECTED

    def test_string_commands(self):
        lifecycle = _create_lifecycle()
        assert lifecycle.transition("TRF-0001", "approve").status == ProposalStatus.VALIDATED


class TestInvalidTransitions:
    def test_received_then_approve_fails(self):
        lifecycle = _create_lifecycle(_proposal(status=ProposalStatus.RECEIVED))
        with pytest.raises(InvalidTransition) as exc:
            lifecycle.approve("TRF-0001")
        assert exc.value.current == "received"
        assert exc.value.command == "approve"
        assert exc.value.proposal_id == "TRF-0001"

    def test_approve_twice_fails(self):
        lifecycle = _create_lifecycle()
        lifecycle.approve("TRF-0001")
        with pytest.raises(InvalidTransition):
            lifecycle.approve("TRF-0001")

    def test_rejected_is_terminal(self):
        lifecycle = _create_lifecycle()
        lifecycle.reject("TRF-0001")
        with pytest.raises(InvalidTransition):
            lifecycle.approve("TRF-0001")
        with pytest.raises(InvalidTransition):
            lifecycle.reject("TRF-0001")

    def test_in_transit_requires_validation(self):
        lifecycle = _create_lifecycle()
        with pytest.raises(InvalidTransition):
            lifecycle.mark_in_transit("TRF-0001")

    def test_cannot_reject_in_transit(self):
        lifecycle = _create_lifecycle(_proposal(status=ProposalStatus.IN_TRANSIT))
        with pytest.raises(InvalidTransition):
            lifecycle.reject("TRF-0001")

    def test_failed_transition_leaves_others_untouched(self):
        lifecycle = _create_lifecycle(_proposal("P1"), _proposal("P2", ProposalStatus.RECEIVED))
        with pytest.raises(InvalidTransition):
            lifecycle.approve("P2")
        assert lifecycle.store.get("P1").status == ProposalStatus.PROPOSED

    def test_unknown_proposal(self):
        lifecycle = _create_lifecycle()
        with pytest.raises(NotFound) as exc:
            lifecycle.approve("TRF-9999")
        assert exc.value.entity_id == "TRF-9999"

    def test_unknown_command(self):
        lifecycle = _create_lifecycle()
        with pytest.raises(ValueError):
            lifecycle.transition("TRF-0001", "ship")

    def test_lost_race_raises_with_latest_status(self):
        store = MagicMock()
        store.get.side_effect = [_proposal(), _proposal(status=ProposalStatus.REJECTED)]
        store.compare_and_set.return_value = False
        lifecycle = ProposalLifecycle(store)
        with pytest.raises(InvalidTransition) as exc:
            lifecycle.approve("TRF-0001")
        assert exc.value.current == "rejected"
        assert store.compare_and_set.call_count == 1


class TestInMemoryProposalStore:
    """Stored proposals change only through compare_and_set."""

    def test_mutating_added_proposal_does_not_touch_store(self):
        store = InMemoryProposalStore()
        proposal = _proposal()
        store.add(proposal)
        proposal.status = ProposalStatus.RECEIVED
        assert store.get("TRF-0001").status == ProposalStatus.PROPOSED

    def test_mutating_returned_proposal_does_not_touch_store(self):
        store = InMemoryProposalStore()
        store.add_many([_proposal("P1"), _proposal("P2")])
        store.get("P1").status = ProposalStatus.RECEIVED
        store.list()[1].status = ProposalStatus.RECEIVED
        assert {p.status for p in store.list()} == {ProposalStatus.PROPOSED}

    def test_compare_and_set_does_not_change_earlier_reads(self):
        store = InMemoryProposalStore()
        store.add(_proposal())
        before = store.get("TRF-0001")
        assert store.compare_and_set("TRF-0001", ProposalStatus.PROPOSED, ProposalStatus.VALIDATED, "t")
        assert before.status == ProposalStatus.PROPOSED
        assert store.get("TRF-0001").status == ProposalStatus.VALIDATED

    def test_remove_many_ignores_unknown_ids(self):
        store = InMemoryProposalStore()
        store.add_many([_proposal("P1"), _proposal("P2")])
        store.remove_many(["P1", "P9"])
        assert [p.proposal_id for p in store.list()] == ["P2"]


class _SameReadStore(InMemoryProposalStore):
    """Holds the first `readers` reads until all of them have happened."""

    def __init__(self, readers: int):
        super().__init__()
        self._barrier = threading.Barrier(readers)
        self._reads = 0
        self._reads_lock = threading.Lock()

    def get(self, proposal_id):
        with self._reads_lock:
            self._reads += 1
            wait = self._reads <= self._barrier.parties
        proposal = super().get(proposal_id)
        status = proposal.status
        if wait:
            self._barrier.wait()
        return replace(proposal, status=status)


class TestConcurrency:
    """Commands on one proposal are serialized."""

    def test_concurrent_approvals_apply_once(self):
        lifecycle = _create_lifecycle()
        barrier = threading.Barrier(8)
        successes, failures = [], []

        def approve():
            barrier.wait()
            try:
                successes.append(lifecycle.approve("TRF-0001"))
            except InvalidTransition as e:
                failures.append(e)

        threads = [threading.Thread(target=approve) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(successes) == 1
        assert len(failures) == 7

    def test_approve_and_reject_on_same_read_do_not_both_apply(self):
        store = _SameReadStore(readers=2)
        store.add(_proposal())
        lifecycle = ProposalLifecycle(store)
        applied, refused = [], []

        def run(command):
            try:
                lifecycle.transition("TRF-0001", command)
                applied.append(command)
            except InvalidTransition:
                refused.append(command)

        threads = [
            threading.Thread(target=run, args=(LifecycleCommand.APPROVE,)),
            threading.Thread(target=run, args=(LifecycleCommand.REJECT,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(applied) == 1
        assert len(refused) == 1
        expected = TRANSITIONS[applied[0]][1]
        assert store.get("TRF-0001").status == expected


class TestDynamoDBProposalStore:
    def test_compare_and_set_conditional_update(self):
        table = MagicMock()
        store = DynamoDBProposalStore(table)
        assert store.compare_and_set("P1", ProposalStatus.PROPOSED, ProposalStatus.VALIDATED, "2024-05-20") is True
        kwargs = table.update_item.call_args.kwargs
        assert kwargs["ConditionExpression"] == "#s = :expected"
        assert kwargs["ExpressionAttributeValues"][":expected"] == "proposed"
        assert kwargs["ExpressionAttributeValues"][":new"] == "validated"

    def test_condition_failure_returns_false(self):
        table = MagicMock()
        table.update_item.side_effect = ClientError(
            {"Error": {"Code": "ConditionalCheckFailedException", "Message": "failed"}}, "UpdateItem"
        )
        store = DynamoDBProposalStore(table)
        assert store.compare_and_set("P1", ProposalStatus.PROPOSED, ProposalStatus.VALIDATED, "t") is False

    def test_other_errors_propagate(self):
        table = MagicMock()
        table.update_item.side_effect = ClientError(
            {"Error": {"Code": "InternalServerError", "Message": "boom"}}, "UpdateItem"
        )
        store = DynamoDBProposalStore(table)
        with pytest.raises(ClientError):
            store.compare_and_set("P1", ProposalStatus.PROPOSED, ProposalStatus.VALIDATED, "t")

    def test_get_missing_raises_not_found(self):
        table = MagicMock()
        table.get_item.return_value = {}
        with pytest.raises(NotFound):
            DynamoDBProposalStore(table).get("P1")

    def test_get_round_trips_item(self):
        table = MagicMock()
        table.get_item.return_value = {"Item": _proposal().to_item()}
        proposal = DynamoDBProposalStore(table).get("TRF-0001")
        assert proposal.quantity == 20
        assert proposal.status == ProposalStatus.PROPOSED

    def test_list_by_status_uses_index(self):
        table = MagicMock()
        table.query.return_value = {"Items": [_proposal().to_item()]}
        proposals = DynamoDBProposalStore(table).list(ProposalStatus.PROPOSED)
        assert len(proposals) == 1
        assert table.query.call_args.kwargs["IndexName"] == "StatusTimeIndex"

    def test_add_many_uses_batch_writer(self):
        table = MagicMock()
        batch = table.batch_writer.return_value.__enter__.return_value
        DynamoDBProposalStore(table).add_many([_proposal("P1"), _proposal("P2")])
        assert [c.kwargs["Item"]["proposal_id"] for c in batch.put_item.call_args_list] == ["P1", "P2"]

    def test_remove_many_deletes_by_key(self):
        table = MagicMock()
        batch = table.batch_writer.return_value.__enter__.return_value
        DynamoDBProposalStore(table).remove_many(["P1"])
        batch.delete_item.assert_called_once_with(Key={"proposal_id": "P1"})
