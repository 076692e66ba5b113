"""
Преобразование сущностей в JSON и обратно

Используется хранилищем и импортом/экспортом. Даты хранятся в
ISO 8601. При импорте все идентификаторы генерируются заново.
"""

import json
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from .models import (
    Rail, RailType, CutPiece, Plan, CutSuggestion, MaterialPlan, SourceKind,
    GatheringStep, CuttingStep, ReturnConfirmation, ExecutedCut, WorkOrder,
    WorkOrderStatus, WorkOrderPhase, generate_id
)
from .optimizer import source_kind_for_rail
from .work_order import build_gathering_steps, build_cutting_steps


def _format_dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str], default: Optional[datetime] = None) -> Optional[datetime]:
    if not value:
        return default
    return datetime.fromisoformat(value)


# ========================================
# Склад и планы
# ========================================

def rail_type_to_dict(rail_type: RailType) -> Dict[str, Any]:
    return {'width': rail_type.width, 'thickness': rail_type.thickness, 'label': rail_type.label}


def rail_type_from_dict(data: Dict[str, Any]) -> RailType:
    return RailType(int(data['width']), int(data['thickness']), data.get('label', ''))


def rail_to_dict(rail: Rail) -> Dict[str, Any]:
    return {
        'id': rail.id,
        'length': rail.length,
        'width': rail.width,
        'thickness': rail.thickness,
        'is_remainder': rail.is_remainder,
        'original_rail_id': rail.original_rail_id,
        'notes': rail.notes,
        'created_at': _format_dt(rail.created_at),
    }


def rail_from_dict(data: Dict[str, Any]) -> Rail:
    return Rail(
        id=data['id'],
        length=int(data['length']),
        width=int(data['width']),
        thickness=int(data['thickness']),
        is_remainder=bool(data.get('is_remainder', False)),
        original_rail_id=data.get('original_rail_id'),
        notes=data.get('notes'),
        created_at=_parse_dt(data.get('created_at'), datetime.now()),
    )


def piece_to_dict(piece: CutPiece) -> Dict[str, Any]:
    return {
        'id': piece.id,
        'length': piece.length,
        'quantity': piece.quantity,
        'purpose': piece.purpose,
        'rail_type': rail_type_to_dict(piece.rail_type),
    }


def piece_from_dict(data: Dict[str, Any]) -> CutPiece:
    return CutPiece(
        id=data['id'],
        length=int(data['length']),
        quantity=int(data.get('quantity', 1)),
        purpose=data.get('purpose', ''),
        rail_type=rail_type_from_dict(data['rail_type']),
    )


def plan_to_dict(plan: Plan) -> Dict[str, Any]:
    return {
        'id': plan.id,
        'name': plan.name,
        'description': plan.description,
        'required_pieces': [piece_to_dict(p) for p in plan.required_pieces],
        'created_at': _format_dt(plan.created_at),
        'updated_at': _format_dt(plan.updated_at),
    }


def plan_from_dict(data: Dict[str, Any]) -> Plan:
    now = datetime.now()
    return Plan(
        id=data['id'],
        name=data['name'],
        description=data.get('description'),
        required_pieces=[piece_from_dict(p) for p in data.get('required_pieces', [])],
        created_at=_parse_dt(data.get('created_at'), now),
        updated_at=_parse_dt(data.get('updated_at'), now),
    )


# ========================================
# План материалов
# ========================================

def suggestion_to_dict(suggestion: CutSuggestion) -> Dict[str, Any]:
    return {
        'source_rail': rail_to_dict(suggestion.source_rail),
        'piece': piece_to_dict(suggestion.piece),
        'remainder_length': suggestion.remainder_length,
        'waste': suggestion.waste,
        'is_optimal': suggestion.is_optimal,
        'source_kind': suggestion.source_kind.value,
        'shortfall': suggestion.shortfall,
    }


def suggestion_from_dict(data: Dict[str, Any]) -> CutSuggestion:
    source_rail = rail_from_dict(data['source_rail'])
    source_kind = data.get('source_kind')
    return CutSuggestion(
        source_rail=source_rail,
        piece=piece_from_dict(data['piece']),
        remainder_length=int(data.get('remainder_length', 0)),
        waste=int(data.get('waste', 0)),
        is_optimal=bool(data.get('is_optimal', False)),
        source_kind=SourceKind(source_kind) if source_kind else source_kind_for_rail(source_rail),
        shortfall=int(data.get('shortfall', 0)),
    )


def material_plan_to_dict(material_plan: MaterialPlan) -> Dict[str, Any]:
    return {
        'plan': plan_to_dict(material_plan.plan),
        'suggestions': [suggestion_to_dict(s) for s in material_plan.suggestions],
        'total_waste': material_plan.total_waste,
        'used_remainders': material_plan.used_remainders,
        'new_rails_needed': material_plan.new_rails_needed,
    }


def material_plan_from_dict(data: Dict[str, Any]) -> MaterialPlan:
    return MaterialPlan(
        plan=plan_from_dict(data['plan']),
        suggestions=[suggestion_from_dict(s) for s in data.get('suggestions', [])],
        total_waste=int(data.get('total_waste', 0)),
        used_remainders=int(data.get('used_remainders', 0)),
        new_rails_needed=int(data.get('new_rails_needed', 0)),
    )


# ========================================
# Наряды
# ========================================

def gathering_step_to_dict(step: GatheringStep) -> Dict[str, Any]:
    return {
        'id': step.id,
        'rail_type': rail_type_to_dict(step.rail_type),
        'source_rail_id': step.source_rail_id,
        'length': step.length,
        'is_remainder': step.is_remainder,
        'is_from_new_stock': step.is_from_new_stock,
        'confirmed': step.confirmed,
        'confirmed_at': _format_dt(step.confirmed_at),
    }


def gathering_step_from_dict(data: Dict[str, Any]) -> GatheringStep:
    return GatheringStep(
        id=data['id'],
        rail_type=rail_type_from_dict(data['rail_type']),
        source_rail_id=data['source_rail_id'],
        length=int(data['length']),
        is_remainder=bool(data.get('is_remainder', False)),
        is_from_new_stock=bool(data.get('is_from_new_stock', False)),
        confirmed=bool(data.get('confirmed', False)),
        confirmed_at=_parse_dt(data.get('confirmed_at')),
    )


def cutting_step_to_dict(step: CuttingStep) -> Dict[str, Any]:
    return {
        'id': step.id,
        'suggestion_index': step.suggestion_index,
        'source_rail_id': step.source_rail_id,
        'piece_id': step.piece_id,
        'rail_type': rail_type_to_dict(step.rail_type),
        'source_length': step.source_length,
        'cut_length': step.cut_length,
        'remainder_length': step.remainder_length,
        'waste_length': step.waste_length,
        'purpose': step.purpose,
        'source_kind': step.source_kind.value,
        'confirmed': step.confirmed,
        'confirmed_at': _format_dt(step.confirmed_at),
    }


def cutting_step_from_dict(data: Dict[str, Any]) -> CuttingStep:
    return CuttingStep(
        id=data['id'],
        suggestion_index=int(data['suggestion_index']),
        source_rail_id=data['source_rail_id'],
        piece_id=data['piece_id'],
        rail_type=rail_type_from_dict(data['rail_type']),
        source_length=int(data['source_length']),
        cut_length=int(data['cut_length']),
        remainder_length=int(data.get('remainder_length', 0)),
        waste_length=int(data.get('waste_length', 0)),
        purpose=data.get('purpose', ''),
        source_kind=SourceKind(data.get('source_kind', SourceKind.INVENTORY.value)),
        confirmed=bool(data.get('confirmed', False)),
        confirmed_at=_parse_dt(data.get('confirmed_at')),
    )


def executed_cut_to_dict(cut: ExecutedCut) -> Dict[str, Any]:
    return {
        'id': cut.id,
        'suggestion_index': cut.suggestion_index,
        'piece_id': cut.piece_id,
        'source_rail_id': cut.source_rail_id,
        'cut_length': cut.cut_length,
        'executed_at': _format_dt(cut.executed_at),
        'executed_by': cut.executed_by,
    }


def executed_cut_from_dict(data: Dict[str, Any]) -> ExecutedCut:
    return ExecutedCut(
        id=data['id'],
        suggestion_index=int(data['suggestion_index']),
        piece_id=data['piece_id'],
        source_rail_id=data['source_rail_id'],
        cut_length=int(data['cut_length']),
        executed_at=_parse_dt(data.get('executed_at'), datetime.now()),
        executed_by=data.get('executed_by'),
    )


def work_order_to_dict(work_order: WorkOrder) -> Dict[str, Any]:
    confirmation = work_order.return_confirmation
    return {
        'id': work_order.id,
        'plan_id': work_order.plan_id,
        'plan_name': work_order.plan_name,
        'status': work_order.status.value,
        'phase': work_order.phase.value,
        'created_at': _format_dt(work_order.created_at),
        'started_at': _format_dt(work_order.started_at),
        'completed_at': _format_dt(work_order.completed_at),
        'gathering_steps': [gathering_step_to_dict(s) for s in work_order.gathering_steps],
        'cutting_steps': [cutting_step_to_dict(s) for s in work_order.cutting_steps],
        'return_confirmation': {
            'confirmed': confirmation.confirmed,
            'confirmed_at': _format_dt(confirmation.confirmed_at),
            'notes': confirmation.notes,
        },
        'executed_cuts': [executed_cut_to_dict(c) for c in work_order.executed_cuts],
        'notes': work_order.notes,
        'material_plan_snapshot': material_plan_to_dict(work_order.material_plan_snapshot),
    }


def work_order_from_dict(data: Dict[str, Any]) -> WorkOrder:
    """
    Восстановить наряд; поля, появившиеся в поздних версиях, получают значения
    по умолчанию, а отсутствующие шаги строятся заново из снимка
    """
    snapshot = material_plan_from_dict(data['material_plan_snapshot'])
    status = WorkOrderStatus(data.get('status', WorkOrderStatus.DRAFT.value))

    if data.get('phase'):
        phase = WorkOrderPhase(data['phase'])
    elif status == WorkOrderStatus.COMPLETED:
        phase = WorkOrderPhase.COMPLETED
    else:
        phase = WorkOrderPhase.GATHERING

    if 'gathering_steps' in data:
        gathering_steps = [gathering_step_from_dict(s) for s in data['gathering_steps']]
    else:
        gathering_steps = build_gathering_steps(snapshot)

    if 'cutting_steps' in data:
        cutting_steps = [cutting_step_from_dict(s) for s in data['cutting_steps']]
    else:
        cutting_steps = build_cutting_steps(snapshot)

    confirmation_data = data.get('return_confirmation') or {}

    return WorkOrder(
        id=data['id'],
        plan_id=data['plan_id'],
        plan_name=data.get('plan_name', snapshot.plan.name),
        material_plan_snapshot=snapshot,
        status=status,
        phase=phase,
        created_at=_parse_dt(data.get('created_at'), datetime.now()),
        started_at=_parse_dt(data.get('started_at')),
        completed_at=_parse_dt(data.get('completed_at')),
        gathering_steps=gathering_steps,
        cutting_steps=cutting_steps,
        return_confirmation=ReturnConfirmation(
            confirmed=bool(confirmation_data.get('confirmed', False)),
            confirmed_at=_parse_dt(confirmation_data.get('confirmed_at')),
            notes=confirmation_data.get('notes'),
        ),
        executed_cuts=[executed_cut_from_dict(c) for c in data.get('executed_cuts', [])],
        notes=data.get('notes'),
    )


# ========================================
# Импорт / экспорт
# ========================================

def export_plan(plan: Plan) -> str:
    return json.dumps(plan_to_dict(plan), ensure_ascii=False, indent=2)


def import_plan(text: str) -> Plan:
    """
    Прочитать план из JSON; все идентификаторы создаются заново

    Raises:
        ValueError: некорректный JSON или формат плана
    """
    data = json.loads(text)
    if not isinstance(data, dict) or not data.get('name') or 'required_pieces' not in data:
        raise ValueError("Неверный формат файла плана")

    try:
        pieces = [{**piece, 'id': generate_id()} for piece in data['required_pieces']]
        plan = plan_from_dict({**data, 'id': generate_id(), 'required_pieces': pieces})
    except (KeyError, TypeError) as e:
        raise ValueError(f"Неверный формат детали в плане: {e}") from e

    now = datetime.now()
    return replace(plan, created_at=now, updated_at=now)


def export_inventory(rails: List[Rail]) -> str:
    return json.dumps([rail_to_dict(r) for r in rails], ensure_ascii=False, indent=2)


def import_inventory(text: str) -> List[Rail]:
    """
    Прочитать склад из JSON; все идентификаторы создаются заново

    Raises:
        ValueError: некорректный JSON или формат склада
    """
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("Неверный формат файла склада")
    try:
        return [rail_from_dict({**entry, 'id': generate_id()}) for entry in data]
    except (KeyError, TypeError) as e:
        raise ValueError(f"Неверный формат шины: {e}") from e
