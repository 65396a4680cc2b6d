"""Tests des modèles / Model tests."""

from fleetmaint.models import (
    ActivityIntervalMatrix,
    MaintenanceActivity,
    MaintenancePlan,
    SignatureType,
    WorkOrder,
    WorkOrderItemStatus,
    WorkOrderStatus,
    WorkOrderType,
)
from fleetmaint.models.work_order import (
    WORK_ORDER_TRANSITIONS,
    can_transition,
    can_transition_item,
)
from fleetmaint.services.fleet_lookup import signature_type_for


def test_plan_repr():
    plan = MaintenancePlan(id=1, name="Plan Camion", is_active=True)
    assert "Plan Camion" in repr(plan)


def test_enums():
    assert WorkOrderType.PREVENTIVE.value == "PREVENTIVE"
    assert WorkOrderStatus.IN_PROGRESS.value == "IN_PROGRESS"
    assert WorkOrderItemStatus.SKIPPED.value == "SKIPPED"
    assert SignatureType.SUPERVISOR.value == "SUPERVISOR"


def test_completed_only_through_in_progress():
    sources = {status for status, targets in WORK_ORDER_TRANSITIONS.items() if WorkOrderStatus.COMPLETED in targets}
    assert sources == {WorkOrderStatus.IN_PROGRESS}
    assert not can_transition(WorkOrderStatus.PENDING, WorkOrderStatus.COMPLETED)


def test_terminal_states_have_no_exit():
    for terminal in (WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED):
        assert not any(can_transition(terminal, target) for target in WorkOrderStatus)
        assert WorkOrder(status=terminal).is_terminal


def test_item_transitions():
    assert can_transition_item(WorkOrderItemStatus.PENDING, WorkOrderItemStatus.SKIPPED)
    assert can_transition_item(WorkOrderItemStatus.COMPLETED, WorkOrderItemStatus.COMPLETED)
    assert can_transition_item(WorkOrderItemStatus.COMPLETED, WorkOrderItemStatus.IN_PROGRESS)
    assert not can_transition_item(WorkOrderItemStatus.COMPLETED, WorkOrderItemStatus.PENDING)


def test_applicable_interval_ids_ignores_non_applying_rows():
    activity = MaintenanceActivity(id=1, code="ACE-01", description="Aceite", matrix_rows=[
        ActivityIntervalMatrix(activity_id=1, interval_id=10, applies=True),
        ActivityIntervalMatrix(activity_id=1, interval_id=11, applies=False),
    ])
    assert activity.applicable_interval_ids == {10}


def test_signature_type_for_roles():
    assert signature_type_for(["JEFE_TALLER"]) == SignatureType.SUPERVISOR
    assert signature_type_for(["OPERADOR_TALLER", "JEFE_TALLER"]) == SignatureType.SUPERVISOR
    assert signature_type_for(["OPERADOR_TALLER"]) == SignatureType.OPERATOR
    assert signature_type_for([]) == SignatureType.OPERATOR
