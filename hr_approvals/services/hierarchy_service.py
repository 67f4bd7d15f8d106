"""
Hierarchy store - ordered manager chains per employee
"""
import logging
from typing import Iterable, List, Mapping, Tuple, Union

from sqlalchemy.orm import Session

from hr_approvals.core.exceptions import NotFound, ValidationError
from hr_approvals.models.employee import Employee
from hr_approvals.models.manager_assignment import ManagerAssignment
from hr_approvals.services.audit_service import add_audit
from hr_approvals.services.directory_service import DatabaseDirectory

logger = logging.getLogger(__name__)

AssignmentInput = Union[Tuple[int, int], Mapping[str, int]]


def _normalize(assignments: Iterable[AssignmentInput]) -> List[Tuple[int, int]]:
    """Accept (rank, manager_id) tuples or {"rank", "manager_id"} mappings"""
    normalized = []
    for item in assignments:
        if isinstance(item, Mapping):
            normalized.append((item["rank"], item["manager_id"]))
        elif hasattr(item, "rank") and hasattr(item, "manager_id"):
            normalized.append((item.rank, item.manager_id))
        else:
            rank, manager_id = item
            normalized.append((rank, manager_id))
    return normalized


def validate_chain(employee_id: int, assignments: List[Tuple[int, int]]) -> None:
    """
    Check a proposed chain without touching the database

    Raises:
        ValidationError: If the chain is malformed
    """
    if not assignments:
        return

    ranks = [rank for rank, _ in assignments]
    if any(rank is None or rank < 0 for rank in ranks):
        raise ValidationError("Manager ranks must be non-negative integers")

    if len(set(ranks)) != len(ranks):
        duplicates = sorted({r for r in ranks if ranks.count(r) > 1})
        raise ValidationError(
            f"Duplicate manager ranks: {duplicates}",
            details={"duplicate_ranks": duplicates},
        )

    if 0 not in ranks:
        raise ValidationError("A rank 0 (direct) manager is required when any managers are assigned")

    manager_ids = [manager_id for _, manager_id in assignments]
    if employee_id in manager_ids:
        raise ValidationError("An employee cannot be their own manager")

    if len(set(manager_ids)) != len(manager_ids):
        raise ValidationError("The same manager cannot hold more than one rank in a chain")


def set_chain(
    db: Session,
    employee_id: int,
    assignments: Iterable[AssignmentInput],
    actor_id: int,
) -> List[ManagerAssignment]:
    """
    Replace an employee's whole approval chain in one transaction

    Existing assignments are deleted and the new ones inserted; the
    employee's reporting_manager_id is updated to the new rank-0 manager (or
    cleared) in the same transaction.

    Args:
        db: Database session
        employee_id: Employee whose chain is replaced
        assignments: (rank, manager_id) pairs; may be empty to clear the chain
        actor_id: ID of the user performing the change

    Returns:
        New assignments ordered by rank

    Raises:
        NotFound: If the employee does not exist
        ValidationError: If the chain is malformed or references unknown managers
    """
    pairs = _normalize(assignments)

    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFound(f"Employee with id {employee_id} not found")

    validate_chain(employee_id, pairs)

    missing = DatabaseDirectory(db).missing(manager_id for _, manager_id in pairs)
    if missing:
        raise ValidationError(
            f"Managers not found: {sorted(missing)}",
            details={"missing_manager_ids": sorted(missing)},
        )

    previous = [(a.rank, a.manager_id) for a in get_assignments(db, employee_id)]

    try:
        db.query(ManagerAssignment).filter(
            ManagerAssignment.employee_id == employee_id
        ).delete(synchronize_session=False)

        created = []
        for rank, manager_id in sorted(pairs):
            assignment = ManagerAssignment(
                employee_id=employee_id,
                manager_id=manager_id,
                rank=rank,
                is_active=True,
            )
            db.add(assignment)
            created.append(assignment)

        employee.reporting_manager_id = dict(pairs).get(0)

        add_audit(
            db,
            actor_id=actor_id,
            action="CHAIN_REPLACE",
            entity_type="manager_chain",
            entity_id=employee_id,
            meta={"before": previous, "after": sorted(pairs)},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    for assignment in created:
        db.refresh(assignment)

    logger.info(
        "manager chain replaced: employee_id=%s ranks=%s actor_id=%s",
        employee_id, [rank for rank, _ in sorted(pairs)], actor_id,
    )
    return created


def get_assignments(db: Session, employee_id: int) -> List[ManagerAssignment]:
    """Active assignments for an employee, ascending by rank"""
    return db.query(ManagerAssignment).filter(
        ManagerAssignment.employee_id == employee_id,
        ManagerAssignment.is_active.is_(True),
    ).order_by(ManagerAssignment.rank.asc()).all()


def get_chain(db: Session, employee_id: int) -> List[Tuple[int, int]]:
    """
    Current chain as (rank, manager_id) pairs, ascending by rank

    An employee without assignments has an empty chain.
    """
    return [(a.rank, a.manager_id) for a in get_assignments(db, employee_id)]


def list_direct_reports(db: Session, manager_id: int) -> List[Tuple[Employee, int]]:
    """
    Employees whose chain includes the manager at any rank

    Returns:
        (employee, rank) pairs ordered by employee name
    """
    rows = db.query(Employee, ManagerAssignment.rank).join(
        ManagerAssignment, ManagerAssignment.employee_id == Employee.id
    ).filter(
        ManagerAssignment.manager_id == manager_id,
        ManagerAssignment.is_active.is_(True),
    ).order_by(Employee.name.asc()).all()
    return [(employee, rank) for employee, rank in rows]
