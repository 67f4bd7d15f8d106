"""
Tests for the escalation controller (pure state logic)
"""
from datetime import datetime, timezone

import pytest

from hr_approvals.core.exceptions import InvalidTransition
from hr_approvals.models.approval import Decision
from hr_approvals.services.chain_resolver import ChainLevel, ResolvedChain
from hr_approvals.services.escalation import (
    initial_state,
    is_terminal,
    next_state,
    status_for_rank,
)

AS_OF = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _chain(*ranks):
    levels = tuple(
        ChainLevel(rank=r, manager_id=100 + r, eligible=frozenset({100 + r}))
        for r in ranks
    )
    return ResolvedChain(employee_id=1, as_of=AS_OF, levels=levels)


def test_empty_chain_is_approved_immediately():
    state = initial_state(_chain())
    assert state.status == "approved"
    assert state.current_rank is None
    assert state.is_final


def test_initial_state_is_pending_at_rank_zero():
    state = initial_state(_chain(0, 1, 2))
    assert state.status == "pending"
    assert state.current_rank == 0
    assert not state.is_final


def test_approve_walks_every_rank_then_finalizes():
    chain = _chain(0, 1, 2)
    state = initial_state(chain)
    seen = []
    while not state.is_final:
        state = next_state(state.status, state.current_rank, chain, Decision.APPROVE)
        seen.append((state.status, state.current_rank))
    assert seen == [("approved_n1", 1), ("approved_n2", 2), ("approved", None)]


def test_non_contiguous_ranks_skip_gaps():
    chain = _chain(0, 2, 5)
    state = next_state("pending", 0, chain, Decision.APPROVE)
    assert (state.status, state.current_rank) == ("approved_n2", 2)
    state = next_state(state.status, state.current_rank, chain, Decision.APPROVE)
    assert (state.status, state.current_rank) == ("approved_n5", 5)
    state = next_state(state.status, state.current_rank, chain, Decision.APPROVE)
    assert state.status == "approved"


def test_single_rank_chain_finalizes_on_first_approval():
    state = next_state("pending", 0, _chain(0), Decision.APPROVE)
    assert state.status == "approved"
    assert state.current_rank is None


@pytest.mark.parametrize("status,rank", [("pending", 0), ("approved_n1", 1)])
def test_reject_from_any_in_flight_state(status, rank):
    state = next_state(status, rank, _chain(0, 1), Decision.REJECT)
    assert state.status == "rejected"
    assert state.current_rank is None
    assert state.is_final


def test_cancel_only_from_approved():
    state = next_state("approved", None, _chain(0), Decision.CANCEL)
    assert state.status == "cancelled"


@pytest.mark.parametrize("status,rank", [("pending", 0), ("approved_n1", 1), ("rejected", None), ("cancelled", None)])
def test_cancel_from_other_states_is_invalid(status, rank):
    with pytest.raises(InvalidTransition):
        next_state(status, rank, _chain(0, 1), Decision.CANCEL)


@pytest.mark.parametrize("status", ["approved", "rejected", "cancelled"])
@pytest.mark.parametrize("decision", [Decision.APPROVE, Decision.REJECT])
def test_terminal_states_accept_no_decisions(status, decision):
    with pytest.raises(InvalidTransition):
        next_state(status, None, _chain(0, 1), decision)


def test_submit_is_not_a_transition():
    with pytest.raises(InvalidTransition):
        next_state("pending", 0, _chain(0), Decision.SUBMIT)


def test_status_helpers():
    assert status_for_rank(0) == "pending"
    assert status_for_rank(3) == "approved_n3"
    assert is_terminal("approved") and is_terminal("cancelled") and is_terminal("rejected")
    assert not is_terminal("approved_n1")
