"""
Тесты планов сборки
"""

import pytest

from rail_planner.core.models import Plan, RailType
from rail_planner.core.plans import PlanService, EXAMPLE_PLAN
from rail_planner.core.serialization import plan_to_dict, plan_from_dict
from rail_planner.core.store import MemoryStore, Repository, PLANS_KEY

from conftest import SlowStore, run_in_threads


@pytest.fixture
def plans():
    return PlanService(Repository[Plan](MemoryStore(), PLANS_KEY, plan_to_dict, plan_from_dict))


def test_add_plan_with_pieces(plans):
    plan = plans.add_plan("Шкаф А", "Ввод 3 фазы")
    piece = plans.add_piece_to_plan(plan.id, 500, 3, "Главная шина", RailType(30, 10))

    stored = plans.get_plan(plan.id)
    assert stored.description == "Ввод 3 фазы"
    assert stored.required_pieces == [piece]
    assert stored.total_pieces == 3
    assert stored.updated_at >= plan.updated_at


def test_add_piece_to_missing_plan(plans):
    assert plans.add_piece_to_plan("missing", 500, 1, "Шина", RailType(12, 5)) is None


def test_invalid_piece_rejected(plans):
    plan = plans.add_plan("Шкаф А")

    with pytest.raises(ValueError):
        plans.add_piece_to_plan(plan.id, 0, 1, "Шина", RailType(12, 5))
    with pytest.raises(ValueError):
        plans.add_piece_to_plan(plan.id, 100, 0, "Шина", RailType(12, 5))


def test_update_plan(plans):
    plan = plans.add_plan("Шкаф А")

    updated = plans.update_plan(plan.id, name="Шкаф Б", id="other")

    assert updated.id == plan.id
    assert plans.get_plan(plan.id).name == "Шкаф Б"
    assert plans.update_plan("missing", name="x") is None


def test_update_and_remove_piece(plans):
    plan = plans.add_plan("Шкаф А")
    first = plans.add_piece_to_plan(plan.id, 500, 1, "L1", RailType(12, 5))
    second = plans.add_piece_to_plan(plan.id, 300, 2, "PE", RailType(20, 5))

    updated = plans.update_piece_in_plan(plan.id, first.id, quantity=4)
    assert updated.quantity == 4
    assert plans.get_plan(plan.id).required_pieces[0].quantity == 4
    assert plans.update_piece_in_plan(plan.id, "missing", quantity=2) is None

    assert plans.remove_piece_from_plan(plan.id, first.id)
    assert not plans.remove_piece_from_plan(plan.id, first.id)
    assert [p.id for p in plans.get_plan(plan.id).required_pieces] == [second.id]


def test_duplicate_plan(plans):
    plan = plans.add_plan("Шкаф А", "Описание")
    piece = plans.add_piece_to_plan(plan.id, 500, 2, "L1", RailType(12, 5))

    copy = plans.duplicate_plan(plan.id)

    assert copy.name == "Шкаф А (Copy)"
    assert copy.id != plan.id
    assert copy.description == "Описание"
    assert copy.required_pieces[0].id != piece.id
    assert copy.required_pieces[0].length == 500
    assert len(plans.list_plans()) == 2
    assert plans.duplicate_plan("missing") is None


def test_example_plan(plans):
    plan = plans.add_example_plan()

    assert plan.name == "Distribution Cabinet Type A"
    assert len(plan.required_pieces) == len(EXAMPLE_PLAN['pieces'])
    assert plan.total_pieces == 31
    assert plan.required_pieces[0].rail_type == RailType(30, 10)


def test_export_import_plan(plans):
    plan = plans.add_example_plan()

    imported = plans.import_plan(plans.export_plan(plan.id))

    assert imported.id != plan.id
    assert imported.name == plan.name
    assert [p.length for p in imported.required_pieces] == [p.length for p in plan.required_pieces]
    assert plans.get_plan(imported.id) == imported
    assert plans.export_plan("missing") is None


def test_import_bad_plan(plans):
    with pytest.raises(ValueError):
        plans.import_plan('{"name": ""}')
    assert plans.list_plans() == []


def test_remove_plan(plans):
    plan = plans.add_plan("Шкаф А")

    assert plans.remove_plan(plan.id)
    assert not plans.remove_plan(plan.id)


def test_concurrent_piece_additions_are_not_lost():
    plans = PlanService(Repository[Plan](SlowStore(), PLANS_KEY, plan_to_dict, plan_from_dict))
    plan = plans.add_plan("Шкаф А")

    def add_pieces():
        for _ in range(25):
            plans.add_piece_to_plan(plan.id, 100, 1, "Перемычка", RailType(12, 5))

    run_in_threads(add_pieces)

    assert len(plans.get_plan(plan.id).required_pieces) == 100
