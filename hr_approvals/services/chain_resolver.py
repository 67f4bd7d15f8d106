"""
Approval chain resolver

Turns an employee's manager assignments plus the delegations active at one
instant into the ordered list of levels a request must pass through.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.orm import Session

from hr_approvals.services import delegation_service, hierarchy_service


@dataclass(frozen=True)
class ChainLevel:
    rank: int
    manager_id: int
    # Manager plus active delegates, minus the requester
    eligible: FrozenSet[int]
    # delegate_id -> delegator_id for everyone eligible through a delegation
    delegations: Dict[int, int] = field(default_factory=dict)

    def acting_for(self, actor_id: int) -> Optional[int]:
        """The principal the actor stands in for, or None when acting as themselves"""
        if actor_id == self.manager_id:
            return None
        return self.delegations.get(actor_id)


@dataclass(frozen=True)
class ResolvedChain:
    employee_id: int
    as_of: datetime
    levels: Tuple[ChainLevel, ...]

    @property
    def is_empty(self) -> bool:
        return not self.levels

    @property
    def ranks(self) -> List[int]:
        return [level.rank for level in self.levels]

    def level(self, rank: Optional[int]) -> Optional[ChainLevel]:
        for candidate in self.levels:
            if candidate.rank == rank:
                return candidate
        return None

    def next_rank_after(self, rank: Optional[int]) -> Optional[int]:
        """Smallest configured rank strictly above rank (lowest rank when rank is None)"""
        for candidate in self.levels:
            if rank is None or candidate.rank > rank:
                return candidate.rank
        return None

    def position(self, rank: int) -> Optional[int]:
        """1-based step number of a rank"""
        for index, candidate in enumerate(self.levels, start=1):
            if candidate.rank == rank:
                return index
        return None


def resolve_chain(
    db: Session,
    employee_id: int,
    as_of: datetime,
    request_type: Optional[str] = None,
) -> ResolvedChain:
    """
    Resolve the approval chain for an employee at an instant

    Reads only; delegations are evaluated fresh on every call. An employee
    with no assignments resolves to an empty chain, which callers treat as
    "approve immediately".

    Args:
        db: Database session
        employee_id: Requesting employee
        as_of: Instant at which delegation windows are evaluated
        request_type: Type of the request, for type-scoped delegations

    Returns:
        ResolvedChain with levels in strictly ascending rank order
    """
    levels = []
    for rank, manager_id in hierarchy_service.get_chain(db, employee_id):
        grants = delegation_service.active_delegations_for(
            db,
            principal_id=manager_id,
            rank=rank,
            as_of=as_of,
            request_type=request_type,
            employee_id=employee_id,
        )
        eligible = {manager_id} | set(grants)
        eligible.discard(employee_id)
        levels.append(ChainLevel(
            rank=rank,
            manager_id=manager_id,
            eligible=frozenset(eligible),
            delegations={delegate_id: g.delegator_id for delegate_id, g in grants.items()},
        ))
    return ResolvedChain(employee_id=employee_id, as_of=as_of, levels=tuple(levels))
