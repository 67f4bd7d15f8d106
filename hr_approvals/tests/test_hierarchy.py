"""
Tests for the hierarchy store (manager chains)
"""
import pytest

from hr_approvals.core.exceptions import NotFound, ValidationError
from hr_approvals.models.audit_log import AuditLog
from hr_approvals.models.employee import Role
from hr_approvals.models.manager_assignment import ManagerAssignment
from hr_approvals.services import hierarchy_service


@pytest.fixture
def people(make_employee, hr_user):
    return {
        "employee": make_employee("Employee"),
        "m0": make_employee("Direct Manager", Role.MANAGER),
        "m1": make_employee("Senior Manager", Role.MANAGER),
        "m2": make_employee("Director", Role.VP),
        "hr": hr_user,
    }


def test_set_chain_orders_by_rank_and_syncs_pointer(db, people):
    e, m0, m1, m2 = people["employee"], people["m0"], people["m1"], people["m2"]

    hierarchy_service.set_chain(db, e.id, [(2, m2.id), (0, m0.id), (1, m1.id)], actor_id=people["hr"].id)

    assert hierarchy_service.get_chain(db, e.id) == [(0, m0.id), (1, m1.id), (2, m2.id)]
    db.refresh(e)
    assert e.reporting_manager_id == m0.id


def test_set_chain_accepts_mappings(db, people):
    e, m0 = people["employee"], people["m0"]
    hierarchy_service.set_chain(db, e.id, [{"rank": 0, "manager_id": m0.id}], actor_id=people["hr"].id)
    assert hierarchy_service.get_chain(db, e.id) == [(0, m0.id)]


def test_set_chain_replaces_previous_chain(db, people):
    e, m0, m1, m2 = people["employee"], people["m0"], people["m1"], people["m2"]
    hierarchy_service.set_chain(db, e.id, [(0, m0.id), (1, m1.id)], actor_id=people["hr"].id)

    hierarchy_service.set_chain(db, e.id, [(0, m2.id)], actor_id=people["hr"].id)

    assert hierarchy_service.get_chain(db, e.id) == [(0, m2.id)]
    assert db.query(ManagerAssignment).filter(ManagerAssignment.employee_id == e.id).count() == 1
    db.refresh(e)
    assert e.reporting_manager_id == m2.id


def test_empty_chain_clears_pointer(db, people):
    e, m0 = people["employee"], people["m0"]
    hierarchy_service.set_chain(db, e.id, [(0, m0.id)], actor_id=people["hr"].id)

    hierarchy_service.set_chain(db, e.id, [], actor_id=people["hr"].id)

    assert hierarchy_service.get_chain(db, e.id) == []
    db.refresh(e)
    assert e.reporting_manager_id is None


def test_non_contiguous_ranks_are_allowed(db, people):
    e, m0, m2 = people["employee"], people["m0"], people["m2"]
    hierarchy_service.set_chain(db, e.id, [(0, m0.id), (3, m2.id)], actor_id=people["hr"].id)
    assert hierarchy_service.get_chain(db, e.id) == [(0, m0.id), (3, m2.id)]


@pytest.mark.parametrize(
    "build,message",
    [
        (lambda p: [(1, p["m1"].id)], "rank 0"),
        (lambda p: [(0, p["m0"].id), (0, p["m1"].id)], "Duplicate"),
        (lambda p: [(0, p["employee"].id)], "own manager"),
        (lambda p: [(0, p["m0"].id), (-1, p["m1"].id)], "non-negative"),
        (lambda p: [(0, p["m0"].id), (1, p["m0"].id)], "same manager"),
        (lambda p: [(0, 99999)], "not found"),
    ],
)
def test_invalid_chains_are_rejected_without_changes(db, people, build, message):
    e, m0 = people["employee"], people["m0"]
    hierarchy_service.set_chain(db, e.id, [(0, m0.id)], actor_id=people["hr"].id)

    with pytest.raises(ValidationError, match=message):
        hierarchy_service.set_chain(db, e.id, build(people), actor_id=people["hr"].id)

    assert hierarchy_service.get_chain(db, e.id) == [(0, m0.id)]
    db.refresh(e)
    assert e.reporting_manager_id == m0.id


def test_unknown_employee(db, people):
    with pytest.raises(NotFound):
        hierarchy_service.set_chain(db, 424242, [(0, people["m0"].id)], actor_id=people["hr"].id)


def test_set_chain_is_audited(db, people):
    e, m0 = people["employee"], people["m0"]
    hierarchy_service.set_chain(db, e.id, [(0, m0.id)], actor_id=people["hr"].id)

    entry = db.query(AuditLog).filter(AuditLog.action == "CHAIN_REPLACE").one()
    assert entry.entity_id == e.id
    assert entry.actor_id == people["hr"].id
    assert entry.meta_json["after"] == [[0, m0.id]]


def test_list_direct_reports(db, people, make_employee):
    e, m0, m1 = people["employee"], people["m0"], people["m1"]
    other = make_employee("Other")
    hierarchy_service.set_chain(db, e.id, [(0, m0.id), (1, m1.id)], actor_id=people["hr"].id)
    hierarchy_service.set_chain(db, other.id, [(0, m1.id)], actor_id=people["hr"].id)

    reports = hierarchy_service.list_direct_reports(db, m1.id)

    assert sorted((emp.id, rank) for emp, rank in reports) == sorted([(e.id, 1), (other.id, 0)])
