"""
Жизненный цикл наряда на распил

Все функции чистые: принимают наряд и возвращают новый, исходный объект не
изменяется. Недопустимое действие (не тот шаг, не та фаза, закрытый наряд)
ничего не меняет и возвращает наряд как есть.

Фазы: gathering -> cutting -> returning -> completed
"""

import copy
import logging
from datetime import datetime
from typing import List, Dict, Optional, Tuple

from .models import (
    Plan, Rail, MaterialPlan, WorkOrder, WorkOrderStatus, WorkOrderPhase, PHASE_SEQUENCE,
    GatheringStep, CuttingStep, ExecutedCut, RailGroup, RailGroupOutcome, SourceKind,
    generate_id
)
from .optimizer import MaterialOptimizer, OptimizationSettings

logger = logging.getLogger(__name__)


def create_work_order(plan: Plan, stock: List[Rail], settings: OptimizationSettings = None,
                      notes: Optional[str] = None, now: datetime = None) -> WorkOrder:
    """
    Создать наряд: один прогон оптимизатора, снимок плана материалов и шаги

    Args:
        plan: План сборки
        stock: Снимок склада на момент создания наряда
        settings: Настройки оптимизации
        notes: Примечание к наряду
    """
    snapshot = MaterialOptimizer(settings).generate_material_plan(copy.deepcopy(plan), stock)

    work_order = WorkOrder(
        id=generate_id(),
        plan_id=plan.id,
        plan_name=plan.name,
        material_plan_snapshot=snapshot,
        created_at=now or datetime.now(),
        gathering_steps=build_gathering_steps(snapshot),
        cutting_steps=build_cutting_steps(snapshot),
        notes=notes,
    )
    logger.info(
        f"Создан наряд {work_order.id} по плану '{plan.name}': "
        f"{len(work_order.gathering_steps)} шин к сбору, {len(work_order.cutting_steps)} распилов"
    )
    return work_order


def build_gathering_steps(snapshot: MaterialPlan) -> List[GatheringStep]:
    """
    Шаги сбора: по одному на каждую физическую шину

    Сначала новые и цельные шины, затем остатки; внутри по сечению.
    """
    steps: Dict[str, GatheringStep] = {}
    for suggestion in snapshot.suggestions:
        rail = suggestion.source_rail
        if rail.id in steps:
            continue
        steps[rail.id] = GatheringStep(
            id=generate_id(),
            rail_type=suggestion.piece.rail_type,
            source_rail_id=rail.id,
            length=rail.length,
            is_remainder=rail.is_remainder,
            is_from_new_stock=suggestion.source_kind == SourceKind.NEW_STOCK,
        )
    return sorted(steps.values(), key=lambda step: (step.is_remainder, step.rail_type.label))


def build_cutting_steps(snapshot: MaterialPlan) -> List[CuttingStep]:
    """Шаги распила: по одному на каждое предложение, в порядке оптимизатора"""
    return [
        CuttingStep(
            id=generate_id(),
            suggestion_index=index,
            source_rail_id=suggestion.source_rail.id,
            piece_id=suggestion.piece.id,
            rail_type=suggestion.piece.rail_type,
            source_length=suggestion.source_rail.length,
            cut_length=suggestion.piece.length,
            remainder_length=suggestion.remainder_length,
            waste_length=suggestion.waste,
            purpose=suggestion.piece.purpose,
            source_kind=suggestion.source_kind,
        )
        for index, suggestion in enumerate(snapshot.suggestions)
    ]


def get_current_gathering_step(work_order: WorkOrder) -> Optional[GatheringStep]:
    return next((step for step in work_order.gathering_steps if not step.confirmed), None)


def get_rail_groups(work_order: WorkOrder) -> List[RailGroup]:
    """Сгруппировать шаги распила по исходной шине (в порядке первого появления)"""
    groups: Dict[str, RailGroup] = {}
    for step in work_order.cutting_steps:
        group = groups.get(step.source_rail_id)
        if group is None:
            # Первый распил шины несет ее полную длину
            group = RailGroup(
                source_rail_id=step.source_rail_id,
                rail_type=step.rail_type,
                source_length=step.source_length,
                source_kind=step.source_kind,
            )
            groups[step.source_rail_id] = group
        group.steps.append(step)
    return list(groups.values())


def get_current_rail_group(work_order: WorkOrder) -> Optional[RailGroup]:
    return next((group for group in get_rail_groups(work_order) if not group.confirmed), None)


def get_group_outcome(group: RailGroup, settings: OptimizationSettings = None) -> RailGroupOutcome:
    """Классифицировать то, что останется от шины после всех распилов"""
    min_usable_length = (settings or OptimizationSettings()).min_usable_length
    remaining = max(0, group.remaining)
    remainder_length = remaining if remaining >= min_usable_length else 0

    return RailGroupOutcome(
        source_rail_id=group.source_rail_id,
        rail_type=group.rail_type,
        source_kind=group.source_kind,
        source_length=group.source_length,
        total_cut_length=group.total_cut_length,
        remainder_length=remainder_length,
        waste_length=remaining - remainder_length,
        purposes=[step.purpose for step in group.steps],
    )


def confirm_gathering_step(work_order: WorkOrder, step_id: str, now: datetime = None) -> WorkOrder:
    """Подтвердить текущий шаг сбора"""
    if not _is_in_phase(work_order, WorkOrderPhase.GATHERING):
        return work_order

    current = get_current_gathering_step(work_order)
    if current is None or current.id != step_id:
        logger.warning(f"Наряд {work_order.id}: шаг сбора {step_id} не является текущим")
        return work_order

    now = now or datetime.now()
    updated = copy.deepcopy(work_order)
    step = next(s for s in updated.gathering_steps if s.id == step_id)
    step.confirmed = True
    step.confirmed_at = now
    _mark_started(updated, now)
    return updated


def confirm_rail_group(work_order: WorkOrder, source_rail_id: str,
                       settings: OptimizationSettings = None, now: datetime = None,
                       executed_by: Optional[str] = None) -> Tuple[WorkOrder, Optional[RailGroupOutcome]]:
    """
    Подтвердить распил всей исходной шины

    Returns:
        (наряд, результат для склада); при отказе результат None
    """
    if not _is_in_phase(work_order, WorkOrderPhase.CUTTING):
        return work_order, None

    group = get_current_rail_group(work_order)
    if group is None or group.source_rail_id != source_rail_id:
        logger.warning(f"Наряд {work_order.id}: шина {source_rail_id} не является текущей для распила")
        return work_order, None

    if group.remaining < 0:
        logger.warning(
            f"❌ Наряд {work_order.id}: из шины {group.source_length}мм нельзя отрезать "
            f"{group.total_cut_length}мм"
        )
        return work_order, None

    now = now or datetime.now()
    updated = copy.deepcopy(work_order)
    for step in updated.cutting_steps:
        if step.source_rail_id != source_rail_id:
            continue
        step.confirmed = True
        step.confirmed_at = now
        updated.executed_cuts.append(ExecutedCut(
            id=generate_id(),
            suggestion_index=step.suggestion_index,
            piece_id=step.piece_id,
            source_rail_id=step.source_rail_id,
            cut_length=step.cut_length,
            executed_at=now,
            executed_by=executed_by,
        ))
    _mark_started(updated, now)

    return updated, get_group_outcome(group, settings)


def confirm_return(work_order: WorkOrder, notes: Optional[str] = None, now: datetime = None) -> WorkOrder:
    """Подтвердить возврат остатков и утилизацию отходов"""
    if not _is_in_phase(work_order, WorkOrderPhase.RETURNING):
        return work_order
    if work_order.return_confirmation.confirmed:
        return work_order

    updated = copy.deepcopy(work_order)
    updated.return_confirmation.confirmed = True
    updated.return_confirmation.confirmed_at = now or datetime.now()
    updated.return_confirmation.notes = notes
    return updated


def can_advance_phase(work_order: WorkOrder) -> bool:
    """Все шаги текущей фазы подтверждены"""
    if work_order.status.is_terminal:
        return False
    if work_order.phase == WorkOrderPhase.GATHERING:
        return all(step.confirmed for step in work_order.gathering_steps)
    if work_order.phase == WorkOrderPhase.CUTTING:
        return all(step.confirmed for step in work_order.cutting_steps)
    if work_order.phase == WorkOrderPhase.RETURNING:
        return work_order.return_confirmation.confirmed
    return False


def advance_phase(work_order: WorkOrder, now: datetime = None) -> WorkOrder:
    """Перейти к следующей фазе; без подтверждения всех шагов ничего не происходит"""
    if not can_advance_phase(work_order):
        return work_order

    now = now or datetime.now()
    updated = copy.deepcopy(work_order)
    updated.phase = PHASE_SEQUENCE[PHASE_SEQUENCE.index(work_order.phase) + 1]
    _mark_started(updated, now)

    if updated.phase == WorkOrderPhase.COMPLETED:
        updated.status = WorkOrderStatus.COMPLETED
        updated.completed_at = now
        logger.info(f"✅ Наряд {work_order.id} завершен")
    else:
        logger.info(f"Наряд {work_order.id}: фаза {updated.phase.value}")
    return updated


def cancel_work_order(work_order: WorkOrder, now: datetime = None) -> WorkOrder:
    """
    Отменить наряд. Фаза не меняется, уже выполненные распилы не откатываются.
    """
    if work_order.status.is_terminal:
        return work_order

    updated = copy.deepcopy(work_order)
    updated.status = WorkOrderStatus.CANCELLED
    updated.completed_at = now or datetime.now()
    logger.info(f"Наряд {work_order.id} отменен на фазе {work_order.phase.value}")
    return updated


def get_remainders_to_return(work_order: WorkOrder,
                             settings: OptimizationSettings = None) -> List[RailGroupOutcome]:
    """Остатки, которые нужно вернуть на склад"""
    outcomes = [get_group_outcome(group, settings) for group in get_rail_groups(work_order)]
    return [outcome for outcome in outcomes if outcome.remainder_length > 0]


def get_total_waste(work_order: WorkOrder, settings: OptimizationSettings = None) -> int:
    """Суммарный отход по всем шинам наряда"""
    return sum(get_group_outcome(group, settings).waste_length for group in get_rail_groups(work_order))


def get_progress(work_order: WorkOrder) -> Dict[str, int]:
    groups = get_rail_groups(work_order)
    return {
        'gathering_confirmed': sum(1 for s in work_order.gathering_steps if s.confirmed),
        'gathering_total': len(work_order.gathering_steps),
        'cutting_confirmed': sum(1 for s in work_order.cutting_steps if s.confirmed),
        'cutting_total': len(work_order.cutting_steps),
        'rail_groups_confirmed': sum(1 for g in groups if g.confirmed),
        'rail_groups_total': len(groups),
    }


def _is_in_phase(work_order: WorkOrder, phase: WorkOrderPhase) -> bool:
    if work_order.status.is_terminal:
        logger.warning(f"Наряд {work_order.id} закрыт ({work_order.status.value})")
        return False
    if work_order.phase != phase:
        logger.warning(
            f"Наряд {work_order.id} находится в фазе {work_order.phase.value}, ожидалась {phase.value}"
        )
        return False
    return True


def _mark_started(work_order: WorkOrder, now: datetime):
    if work_order.status == WorkOrderStatus.DRAFT:
        work_order.status = WorkOrderStatus.IN_PROGRESS
        work_order.started_at = now
