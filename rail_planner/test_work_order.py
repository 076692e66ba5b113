"""
Тесты жизненного цикла наряда на распил
"""

import pytest

from rail_planner.core import work_order as wo_logic
from rail_planner.core.models import WorkOrderStatus, WorkOrderPhase, SourceKind

from conftest import make_rail, make_piece, make_plan


@pytest.fixture
def stock():
    return [make_rail(2000, rail_id="full"), make_rail(300, is_remainder=True, rail_id="offcut")]


@pytest.fixture
def work_order(stock):
    plan = make_plan(make_piece(500, quantity=2), make_piece(250))
    return wo_logic.create_work_order(plan, stock, notes="Срочно")


def confirm_all_gathering(work_order):
    while wo_logic.get_current_gathering_step(work_order):
        step = wo_logic.get_current_gathering_step(work_order)
        work_order = wo_logic.confirm_gathering_step(work_order, step.id)
    return wo_logic.advance_phase(work_order)


def confirm_all_cutting(work_order):
    while wo_logic.get_current_rail_group(work_order):
        group = wo_logic.get_current_rail_group(work_order)
        work_order, outcome = wo_logic.confirm_rail_group(work_order, group.source_rail_id)
        assert outcome is not None
    return wo_logic.advance_phase(work_order)


def test_new_work_order(work_order):
    assert work_order.status == WorkOrderStatus.DRAFT
    assert work_order.phase == WorkOrderPhase.GATHERING
    assert work_order.started_at is None
    assert work_order.notes == "Срочно"
    assert work_order.plan_name == "Тестовый шкаф"
    assert len(work_order.cutting_steps) == 3
    assert work_order.executed_cuts == []
    assert not work_order.return_confirmation.confirmed


def test_gathering_steps_deduplicated_and_ordered(work_order):
    """Одна шина - один шаг сбора; цельные шины раньше остатков"""
    steps = work_order.gathering_steps

    assert [s.source_rail_id for s in steps] == ["full", "offcut"]
    assert steps[0].length == 2000
    assert not steps[0].is_remainder
    assert steps[1].is_remainder
    assert not any(s.is_from_new_stock for s in steps)


def test_new_stock_gathering_step():
    work_order = wo_logic.create_work_order(make_plan(make_piece(700), make_piece(250)), [])

    assert len(work_order.gathering_steps) == 1
    step = work_order.gathering_steps[0]
    assert step.is_from_new_stock
    assert step.length == 1000


def test_cutting_steps_follow_suggestions(work_order):
    steps = work_order.cutting_steps

    assert [s.suggestion_index for s in steps] == [0, 1, 2]
    assert [s.cut_length for s in steps] == [500, 500, 250]
    assert [s.source_length for s in steps] == [2000, 1500, 300]
    assert steps[2].source_kind == SourceKind.REMAINDER


def test_confirm_gathering_step_in_order(work_order):
    first, second = work_order.gathering_steps

    unchanged = wo_logic.confirm_gathering_step(work_order, second.id)
    assert unchanged is work_order

    updated = wo_logic.confirm_gathering_step(work_order, first.id)
    assert updated.gathering_steps[0].confirmed
    assert updated.gathering_steps[0].confirmed_at is not None
    assert updated.status == WorkOrderStatus.IN_PROGRESS
    assert updated.started_at is not None

    # Исходный наряд не изменился
    assert not work_order.gathering_steps[0].confirmed
    assert work_order.status == WorkOrderStatus.DRAFT


def test_advance_requires_all_steps(work_order):
    first = work_order.gathering_steps[0]
    partial = wo_logic.confirm_gathering_step(work_order, first.id)

    assert not wo_logic.can_advance_phase(partial)
    assert wo_logic.advance_phase(partial) is partial

    cutting = confirm_all_gathering(work_order)
    assert cutting.phase == WorkOrderPhase.CUTTING


def test_rail_groups(work_order):
    groups = wo_logic.get_rail_groups(work_order)

    assert [g.source_rail_id for g in groups] == ["full", "offcut"]
    assert groups[0].source_length == 2000
    assert groups[0].total_cut_length == 1000
    assert groups[0].remaining == 1000
    assert groups[1].remaining == 50


def test_cannot_cut_during_gathering(work_order):
    updated, outcome = wo_logic.confirm_rail_group(work_order, "full")

    assert outcome is None
    assert updated is work_order


def test_confirm_rail_group(work_order):
    cutting = confirm_all_gathering(work_order)

    skipped, outcome = wo_logic.confirm_rail_group(cutting, "offcut")
    assert outcome is None
    assert skipped is cutting

    updated, outcome = wo_logic.confirm_rail_group(cutting, "full", executed_by="Петров")
    assert outcome.source_rail_id == "full"
    assert outcome.remainder_length == 1000
    assert outcome.waste_length == 0
    assert outcome.purposes == ["Деталь", "Деталь"]
    assert [s.confirmed for s in updated.cutting_steps] == [True, True, False]
    assert len(updated.executed_cuts) == 2
    assert updated.executed_cuts[0].executed_by == "Петров"
    assert updated.executed_cuts[0].cut_length == 500

    assert wo_logic.get_current_rail_group(updated).source_rail_id == "offcut"
    assert not any(s.confirmed for s in cutting.cutting_steps)


def test_group_outcome_waste_below_threshold():
    plan = make_plan(make_piece(970))
    work_order = confirm_all_gathering(wo_logic.create_work_order(plan, [make_rail(1000)]))

    _, outcome = wo_logic.confirm_rail_group(work_order, work_order.cutting_steps[0].source_rail_id)

    assert outcome.remainder_length == 0
    assert outcome.waste_length == 30


def test_oversize_group_cannot_be_confirmed():
    work_order = confirm_all_gathering(wo_logic.create_work_order(make_plan(make_piece(7000)), []))
    group = wo_logic.get_current_rail_group(work_order)

    updated, outcome = wo_logic.confirm_rail_group(work_order, group.source_rail_id)

    assert outcome is None
    assert updated is work_order


def test_full_lifecycle(work_order):
    returning = confirm_all_cutting(confirm_all_gathering(work_order))
    assert returning.phase == WorkOrderPhase.RETURNING
    assert not wo_logic.can_advance_phase(returning)

    remainders = wo_logic.get_remainders_to_return(returning)
    assert [r.remainder_length for r in remainders] == [1000, 50]
    assert wo_logic.get_total_waste(returning) == 0

    confirmed = wo_logic.confirm_return(returning, notes="Все на месте")
    assert confirmed.return_confirmation.confirmed
    assert confirmed.return_confirmation.notes == "Все на месте"

    completed = wo_logic.advance_phase(confirmed)
    assert completed.phase == WorkOrderPhase.COMPLETED
    assert completed.status == WorkOrderStatus.COMPLETED
    assert completed.completed_at is not None

    assert wo_logic.advance_phase(completed) is completed
    assert wo_logic.cancel_work_order(completed) is completed


def test_confirm_return_only_in_returning_phase(work_order):
    assert wo_logic.confirm_return(work_order) is work_order


def test_empty_plan_walks_all_phases():
    work_order = wo_logic.create_work_order(make_plan(), [make_rail(1000)])

    assert work_order.gathering_steps == []
    assert work_order.cutting_steps == []

    cutting = wo_logic.advance_phase(work_order)
    returning = wo_logic.advance_phase(cutting)
    assert returning.phase == WorkOrderPhase.RETURNING
    assert wo_logic.advance_phase(returning) is returning

    completed = wo_logic.advance_phase(wo_logic.confirm_return(returning))
    assert completed.status == WorkOrderStatus.COMPLETED


def test_cancel_work_order(work_order):
    cutting = confirm_all_gathering(work_order)

    cancelled = wo_logic.cancel_work_order(cutting)
    assert cancelled.status == WorkOrderStatus.CANCELLED
    assert cancelled.phase == WorkOrderPhase.CUTTING
    assert cancelled.completed_at is not None

    updated, outcome = wo_logic.confirm_rail_group(cancelled, "full")
    assert outcome is None
    assert updated is cancelled
    assert wo_logic.advance_phase(cancelled) is cancelled


def test_progress(work_order):
    cutting = confirm_all_gathering(work_order)
    updated, _ = wo_logic.confirm_rail_group(cutting, "full")

    assert wo_logic.get_progress(updated) == {
        'gathering_confirmed': 2,
        'gathering_total': 2,
        'cutting_confirmed': 2,
        'cutting_total': 3,
        'rail_groups_confirmed': 1,
        'rail_groups_total': 2,
    }


def test_snapshot_independent_of_plan_changes(stock):
    plan = make_plan(make_piece(500))
    work_order = wo_logic.create_work_order(plan, stock)

    plan.required_pieces.append(make_piece(100))
    plan.name = "Переименован"

    assert len(work_order.material_plan_snapshot.plan.required_pieces) == 1
    assert work_order.material_plan_snapshot.plan.name == "Тестовый шкаф"
