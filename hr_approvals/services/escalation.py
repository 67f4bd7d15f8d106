"""
Escalation controller

Pure state logic: given where a request is and what just happened, say where
it goes next. No I/O, so it can be tested exhaustively without a database.
"""
from dataclasses import dataclass
from typing import Optional

from hr_approvals.core.exceptions import InvalidTransition
from hr_approvals.models.approval import Decision, RequestStatus
from hr_approvals.services.chain_resolver import ResolvedChain

INTERMEDIATE_PREFIX = "approved_n"

TERMINAL_STATUSES = frozenset({
    RequestStatus.APPROVED.value,
    RequestStatus.REJECTED.value,
    RequestStatus.CANCELLED.value,
})


@dataclass(frozen=True)
class Transition:
    status: str
    current_rank: Optional[int]

    @property
    def is_final(self) -> bool:
        return self.status in TERMINAL_STATUSES


def status_for_rank(rank: int) -> str:
    """Status of a request whose outstanding rank is `rank`"""
    if rank == 0:
        return RequestStatus.PENDING.value
    return f"{INTERMEDIATE_PREFIX}{rank}"


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def initial_state(chain: ResolvedChain) -> Transition:
    """
    State of a freshly submitted request

    An empty chain approves immediately; otherwise the lowest configured rank
    is outstanding (reported as pending even when that rank is not 0).
    """
    if chain.is_empty:
        return Transition(RequestStatus.APPROVED.value, None)
    first = chain.levels[0].rank
    return Transition(RequestStatus.PENDING.value, first)


def next_state(status: str, current_rank: Optional[int], chain: ResolvedChain, decision: Decision) -> Transition:
    """
    Next state after a decision

    Args:
        status: Current status
        current_rank: Outstanding rank (None when terminal)
        chain: Chain resolved at the decision instant
        decision: APPROVE, REJECT or CANCEL

    Returns:
        Transition with the new status and outstanding rank

    Raises:
        InvalidTransition: If the decision is not allowed from this status
    """
    decision = Decision(decision)

    if decision == Decision.CANCEL:
        if status != RequestStatus.APPROVED.value:
            raise InvalidTransition(f"Only approved requests can be cancelled (status is '{status}')")
        return Transition(RequestStatus.CANCELLED.value, None)

    if is_terminal(status):
        raise InvalidTransition(f"Request is already {status}")

    if decision == Decision.REJECT:
        return Transition(RequestStatus.REJECTED.value, None)

    if decision == Decision.APPROVE:
        next_rank = chain.next_rank_after(current_rank)
        if next_rank is None:
            return Transition(RequestStatus.APPROVED.value, None)
        return Transition(status_for_rank(next_rank), next_rank)

    raise InvalidTransition(f"Decision '{decision.value}' is not a workflow transition")
