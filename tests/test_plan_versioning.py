"""Tests versionnage des plans / Plan versioning tests."""

import pytest
from sqlalchemy import func, select

from fleetmaint.errors import ConflictError, ValidationError
from fleetmaint.models import ActivityIntervalMatrix, MaintenanceInterval
from fleetmaint.schemas.maintenance_plan import ActivityCreate, IntervalCreate, PlanUpdate
from fleetmaint.services import plan_catalog
from fleetmaint.services.plan_versioning import duplicate_plan, update_plan


def applicability(plan) -> dict[str, list[int]]:
    sequence_of = {i.id: i.sequence_order for i in plan.intervals}
    return {
        a.code: sorted(sequence_of[r.interval_id] for r in a.matrix_rows if r.applies)
        for a in plan.activities
    }


def assert_matrix_within_plan(plan):
    interval_ids = {i.id for i in plan.intervals}
    for activity in plan.activities:
        applied = [r for r in activity.matrix_rows if r.applies]
        assert len(applied) <= len(plan.intervals)
        assert {r.interval_id for r in applied} <= interval_ids


@pytest.mark.asyncio
async def test_update_scalars_only_keeps_structure(db, seed, make_plan):
    plan_id = await make_plan()
    before = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    interval_ids = [i.id for i in before.intervals]

    plan = await update_plan(db, plan_id, PlanUpdate(name="Renombrado", is_active=False), seed.company_id)

    assert plan.name == "Renombrado"
    assert not plan.is_active
    assert [i.id for i in plan.intervals] == interval_ids


@pytest.mark.asyncio
async def test_replacing_intervals_reissues_ids_and_keeps_matrix_by_sequence(db, seed, make_plan):
    plan_id = await make_plan()
    before = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    old_ids = {i.id for i in before.intervals}

    plan = await update_plan(db, plan_id, PlanUpdate(intervals=[
        IntervalCreate(hours=600, kilometers=25000),
        IntervalCreate(hours=1200, kilometers=50000),
    ]), seed.company_id)
    await db.commit()

    assert not old_ids & {i.id for i in plan.intervals}
    assert [(i.sequence_order, i.kilometers) for i in plan.intervals] == [(1, 25000), (2, 50000)]
    # la sequence 3 disparait / sequence 3 is gone
    assert applicability(plan) == {"ACE-01": [1, 2], "FIL-01": [2], "FRE-01": [1]}
    assert_matrix_within_plan(plan)
    assert await db.scalar(select(func.count(MaintenanceInterval.id))) == 2


@pytest.mark.asyncio
async def test_stale_interval_ids_are_rejected_after_replace(db, seed, make_plan):
    plan_id = await make_plan()
    before = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    stale_id = min(i.id for i in before.intervals)

    plan = await update_plan(db, plan_id, PlanUpdate(intervals=[
        IntervalCreate(hours=100, kilometers=1000, sequence_order=7),
        IntervalCreate(hours=200, kilometers=2000, sequence_order=8),
    ]), seed.company_id)
    await db.commit()
    assert stale_id not in {i.id for i in plan.intervals}

    with pytest.raises(ValidationError):
        await update_plan(db, plan_id, PlanUpdate(activities=[
            ActivityCreate(code="ACE-01", description="Aceite", interval_ids=[stale_id]),
        ]), seed.company_id)


@pytest.mark.asyncio
async def test_replacing_activities_matches_by_code(db, seed, make_plan):
    plan_id = await make_plan()
    before = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    oil_id = next(a.id for a in before.activities if a.code == "ACE-01")

    plan = await update_plan(db, plan_id, PlanUpdate(activities=[
        ActivityCreate(code="ACE-01", description="Aceite sintetico", category="Motor", interval_sequences=[2]),
        ActivityCreate(code="NEU-01", description="Rotacion de neumaticos", category="Ruedas",
                       interval_sequences=[1, 3]),
    ]), seed.company_id)

    by_code = {a.code: a for a in plan.activities}
    assert by_code["ACE-01"].id == oil_id
    assert by_code["ACE-01"].description == "Aceite sintetico"
    assert by_code["ACE-01"].is_active
    assert by_code["NEU-01"].is_active
    # absentes du payload : desactivees, sans matrice / missing from payload: deactivated, no matrix
    assert not by_code["FIL-01"].is_active
    assert not by_code["FRE-01"].is_active
    assert applicability(plan) == {"ACE-01": [2], "FIL-01": [], "FRE-01": [], "NEU-01": [1, 3]}


@pytest.mark.asyncio
async def test_replacing_both_uses_new_draft_refs(db, seed, make_plan):
    plan_id = await make_plan()
    plan = await update_plan(db, plan_id, PlanUpdate(
        intervals=[IntervalCreate(hours=100, kilometers=5000, ref="new")],
        activities=[ActivityCreate(code="ACE-01", description="Aceite", interval_refs=["new", "i1"])],
    ), seed.company_id)

    assert len(plan.intervals) == 1
    assert applicability(plan)["ACE-01"] == [1]
    assert_matrix_within_plan(plan)


@pytest.mark.asyncio
async def test_failed_update_leaves_plan_unchanged(db, seed, make_plan):
    plan_id = await make_plan()
    before = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    interval_ids = [i.id for i in before.intervals]
    matrix_before = applicability(before)

    with pytest.raises(ValidationError):
        await update_plan(db, plan_id, PlanUpdate(
            intervals=[IntervalCreate(hours=100, kilometers=5000)],
            activities=[ActivityCreate(code="ACE-01", description="Aceite", interval_sequences=[7])],
        ), seed.company_id)

    plan = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    assert [i.id for i in plan.intervals] == interval_ids
    assert applicability(plan) == matrix_before


@pytest.mark.asyncio
async def test_update_rejects_empty_and_duplicate_payloads(db, seed, make_plan):
    plan_id = await make_plan()
    with pytest.raises(ValidationError):
        await update_plan(db, plan_id, PlanUpdate(intervals=[]), seed.company_id)
    with pytest.raises(ConflictError):
        await update_plan(db, plan_id, PlanUpdate(activities=[
            ActivityCreate(code="X", description="a"),
            ActivityCreate(code="X", description="b"),
        ]), seed.company_id)


@pytest.mark.asyncio
async def test_duplicate_preserves_cardinality_and_remaps_by_sequence(db, seed, make_plan):
    plan_id = await make_plan()
    original = await plan_catalog.get_plan(db, plan_id, seed.company_id)
    original_ids = {i.id for i in original.intervals}
    original_matrix = applicability(original)
    original_rows = sum(len(a.matrix_rows) for a in original.activities)

    copy = await duplicate_plan(db, plan_id, seed.company_id)
    await db.commit()

    assert copy.id != plan_id
    assert copy.name == "Plan Camion (Copia)"
    assert not copy.is_active
    assert copy.vehicle_type == "CAMION"
    assert len(copy.intervals) == len(original.intervals)
    assert len(copy.activities) == len(original.activities)
    assert not original_ids & {i.id for i in copy.intervals}
    assert applicability(copy) == original_matrix
    assert_matrix_within_plan(copy)
    assert await db.scalar(select(func.count(ActivityIntervalMatrix.id))) == 2 * original_rows


@pytest.mark.asyncio
async def test_duplicate_with_name_keeps_activity_flags(db, seed, make_plan):
    plan_id = await make_plan()
    await update_plan(db, plan_id, PlanUpdate(activities=[
        ActivityCreate(code="ACE-01", description="Aceite", interval_sequences=[1]),
        ActivityCreate(code="OLD-01", description="Retirada", is_active=False),
    ]), seed.company_id)

    copy = await duplicate_plan(db, plan_id, seed.company_id, new_name="Plan 2027")
    flags = {a.code: a.is_active for a in copy.activities}
    assert copy.name == "Plan 2027"
    assert flags == {"ACE-01": True, "OLD-01": False, "FIL-01": False, "FRE-01": False}


@pytest.mark.asyncio
async def test_duplicate_of_sparse_sequences(db, seed, make_plan):
    plan_id = await make_plan(
        intervals=[
            IntervalCreate(hours=100, kilometers=1000, sequence_order=10),
            IntervalCreate(hours=200, kilometers=2000, sequence_order=20),
        ],
        activities=[ActivityCreate(code="A", description="a", interval_sequences=[20])],
    )
    copy = await duplicate_plan(db, plan_id, seed.company_id)
    assert [i.sequence_order for i in copy.intervals] == [10, 20]
    assert applicability(copy) == {"A": [20]}
