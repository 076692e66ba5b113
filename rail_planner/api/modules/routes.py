"""
API эндпоинты для Rail Planner
"""

import logging
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException

from .config import (
    DATA_DIR, MIN_USABLE_LENGTH, STANDARD_RAIL_LENGTHS,
    LED_API_BASE, LED_API_TIMEOUT, ENABLE_LED
)
from .models import (
    RailCreate, RailUpdate, CutRequest, ImportRequest,
    PlanCreate, PlanUpdate, PieceCreate, PieceUpdate,
    WorkOrderCreate, RailGroupConfirmRequest, ReturnRequest, NotesRequest,
    StatusResponse, ImportResponse, InitialStockResponse, ExportResponse,
    RailType, Rail, CutResponse, InventoryStats, CutPiece, Plan,
    CutSuggestion, MaterialPlan, MaterialPlanPreview,
    RailGroup, RailGroupOutcome, RemainderToReturn, ReturnsResponse,
    WorkOrder, WorkOrderDetail, WorkOrderProgress, BoxInfo
)
from ...core import models as domain
from ...core import work_order as wo_logic
from ...core.led_api import LedClient, get_led_id_for_length, get_box_description
from ...core.optimizer import OptimizationSettings, calculate_optimization_score, group_suggestions_by_type
from ...core.serialization import export_inventory, import_inventory
from ...core.services import Workshop
from ...core.store import JsonFileStore

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache()
def get_workshop() -> Workshop:
    """Сервисы мастерской поверх файлового хранилища (один экземпляр на процесс)"""
    settings = OptimizationSettings(
        min_usable_length=MIN_USABLE_LENGTH,
        standard_lengths=STANDARD_RAIL_LENGTHS
    )
    led_client = LedClient(LED_API_BASE, timeout=LED_API_TIMEOUT, enabled=ENABLE_LED, background=True)
    logger.info(f"Хранилище данных: {DATA_DIR}")
    return Workshop(JsonFileStore(DATA_DIR), settings, led_client)


def _work_order_response(workshop: Workshop, work_order: domain.WorkOrder) -> WorkOrderDetail:
    current = wo_logic.get_current_rail_group(work_order)
    return WorkOrderDetail(
        **dict(WorkOrder.model_validate(work_order)),
        progress=WorkOrderProgress(**wo_logic.get_progress(work_order)),
        can_advance=wo_logic.can_advance_phase(work_order),
        current_rail_group=RailGroup.model_validate(current) if current else None,
        total_waste=wo_logic.get_total_waste(work_order, workshop.settings)
    )


def _get_work_order_or_404(workshop: Workshop, work_order_id: str) -> domain.WorkOrder:
    work_order = workshop.work_orders.get_work_order(work_order_id)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return work_order


@router.get("/test-connection", response_model=StatusResponse)
def test_connection():
    """
    Проверка доступности API
    """
    return StatusResponse(status="success", message="Соединение установлено")

# ========================================
# Склад
# ========================================

@router.get("/rail-types", response_model=List[RailType])
def list_rail_types():
    """
    Распространенные сечения шин
    """
    return [RailType.model_validate(rail_type) for rail_type in domain.COMMON_RAIL_TYPES]

@router.get("/rails", response_model=List[Rail])
def list_rails(workshop: Workshop = Depends(get_workshop)):
    return [Rail.model_validate(rail) for rail in workshop.inventory.rails]

@router.post("/rails", response_model=Rail)
def add_rail(request: RailCreate, workshop: Workshop = Depends(get_workshop)):
    """
    Добавить шину на склад
    """
    try:
        rail = workshop.inventory.add_rail(
            request.length, request.width, request.thickness,
            is_remainder=request.is_remainder,
            original_rail_id=request.original_rail_id,
            notes=request.notes
        )
        return Rail.model_validate(rail)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/rails/stats", response_model=InventoryStats)
def get_inventory_stats(workshop: Workshop = Depends(get_workshop)):
    return InventoryStats.model_validate(workshop.inventory.get_stats())

@router.get("/rails/export", response_model=ExportResponse)
def export_rails(workshop: Workshop = Depends(get_workshop)):
    """
    Выгрузить склад в JSON (тот же формат принимает /rails/import)
    """
    return ExportResponse(content=export_inventory(workshop.inventory.export_inventory()))

@router.post("/rails/import", response_model=ImportResponse)
def import_rails(request: ImportRequest, workshop: Workshop = Depends(get_workshop)):
    """
    Загрузить шины из JSON (добавляются к текущему складу)
    """
    try:
        rails = workshop.inventory.import_inventory(import_inventory(request.content))
        return ImportResponse(status="success", imported=len(rails))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.post("/rails/initial-stock", response_model=InitialStockResponse)
def add_initial_stock(workshop: Workshop = Depends(get_workshop)):
    added = workshop.inventory.add_initial_stock()
    return InitialStockResponse(status="success", added=len(added))

@router.delete("/rails", response_model=StatusResponse)
def clear_rails(workshop: Workshop = Depends(get_workshop)):
    workshop.inventory.clear_inventory()
    return StatusResponse(status="success", message="Склад очищен")

@router.get("/rails/{rail_id}", response_model=Rail)
def get_rail(rail_id: str, workshop: Workshop = Depends(get_workshop)):
    rail = workshop.inventory.get_rail(rail_id)
    if rail is None:
        raise HTTPException(status_code=404, detail="Шина не найдена")
    return Rail.model_validate(rail)

@router.put("/rails/{rail_id}", response_model=Rail)
def update_rail(rail_id: str, request: RailUpdate, workshop: Workshop = Depends(get_workshop)):
    try:
        rail = workshop.inventory.update_rail(rail_id, **request.model_dump(exclude_unset=True))
        if rail is None:
            raise HTTPException(status_code=404, detail="Шина не найдена")
        return Rail.model_validate(rail)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/rails/{rail_id}", response_model=StatusResponse)
def delete_rail(rail_id: str, workshop: Workshop = Depends(get_workshop)):
    if not workshop.inventory.remove_rail(rail_id):
        raise HTTPException(status_code=404, detail="Шина не найдена")
    return StatusResponse(status="success", message="Шина удалена")

@router.post("/rails/{rail_id}/cut", response_model=CutResponse)
def cut_rail(rail_id: str, request: CutRequest, workshop: Workshop = Depends(get_workshop)):
    """
    Отрезать кусок от шины; ненулевой обрезок остается на складе
    """
    rail = workshop.inventory.get_rail(rail_id)
    if rail is None:
        raise HTTPException(status_code=404, detail="Шина не найдена")
    if request.cut_length <= 0 or request.cut_length > rail.length:
        raise HTTPException(
            status_code=400,
            detail=f"Нельзя отрезать {request.cut_length}мм от шины длиной {rail.length}мм"
        )

    remainder = workshop.inventory.cut_rail(rail_id, request.cut_length, request.purpose)
    return CutResponse(remainder=Rail.model_validate(remainder) if remainder else None)

# ========================================
# Планы
# ========================================

@router.get("/plans", response_model=List[Plan])
def list_plans(workshop: Workshop = Depends(get_workshop)):
    return [Plan.model_validate(plan) for plan in workshop.plans.list_plans()]

@router.post("/plans", response_model=Plan)
def create_plan(request: PlanCreate, workshop: Workshop = Depends(get_workshop)):
    if not request.name.strip():
        raise HTTPException(status_code=400, detail="Название плана не может быть пустым")
    plan = workshop.plans.add_plan(request.name, request.description)
    return Plan.model_validate(plan)

@router.post("/plans/example", response_model=Plan)
def create_example_plan(workshop: Workshop = Depends(get_workshop)):
    return Plan.model_validate(workshop.plans.add_example_plan())

@router.post("/plans/import", response_model=Plan)
def import_plan(request: ImportRequest, workshop: Workshop = Depends(get_workshop)):
    try:
        return Plan.model_validate(workshop.plans.import_plan(request.content))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.get("/plans/{plan_id}", response_model=Plan)
def get_plan(plan_id: str, workshop: Workshop = Depends(get_workshop)):
    plan = workshop.plans.get_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="План не найден")
    return Plan.model_validate(plan)

@router.put("/plans/{plan_id}", response_model=Plan)
def update_plan(plan_id: str, request: PlanUpdate, workshop: Workshop = Depends(get_workshop)):
    updates = request.model_dump(exclude_unset=True)
    if 'name' in updates and not updates['name'].strip():
        raise HTTPException(status_code=400, detail="Название плана не может быть пустым")
    plan = workshop.plans.update_plan(plan_id, **updates)
    if plan is None:
        raise HTTPException(status_code=404, detail="План не найден")
    return Plan.model_validate(plan)

@router.delete("/plans/{plan_id}", response_model=StatusResponse)
def delete_plan(plan_id: str, workshop: Workshop = Depends(get_workshop)):
    if not workshop.plans.remove_plan(plan_id):
        raise HTTPException(status_code=404, detail="План не найден")
    return StatusResponse(status="success", message="План удален")

@router.post("/plans/{plan_id}/duplicate", response_model=Plan)
def duplicate_plan(plan_id: str, workshop: Workshop = Depends(get_workshop)):
    plan = workshop.plans.duplicate_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="План не найден")
    return Plan.model_validate(plan)

@router.get("/plans/{plan_id}/export", response_model=ExportResponse)
def export_plan(plan_id: str, workshop: Workshop = Depends(get_workshop)):
    content = workshop.plans.export_plan(plan_id)
    if content is None:
        raise HTTPException(status_code=404, detail="План не найден")
    return ExportResponse(content=content)

@router.post("/plans/{plan_id}/pieces", response_model=CutPiece)
def add_piece(plan_id: str, request: PieceCreate, workshop: Workshop = Depends(get_workshop)):
    """
    Добавить деталь в план
    """
    try:
        piece = workshop.plans.add_piece_to_plan(
            plan_id, request.length, request.quantity, request.purpose,
            domain.RailType(request.width, request.thickness)
        )
        if piece is None:
            raise HTTPException(status_code=404, detail="План не найден")
        return CutPiece.model_validate(piece)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.put("/plans/{plan_id}/pieces/{piece_id}", response_model=CutPiece)
def update_piece(plan_id: str, piece_id: str, request: PieceUpdate,
                 workshop: Workshop = Depends(get_workshop)):
    plan = workshop.plans.get_plan(plan_id)
    piece = next((p for p in plan.required_pieces if p.id == piece_id), None) if plan else None
    if piece is None:
        raise HTTPException(status_code=404, detail="Деталь не найдена")

    updates = request.model_dump(exclude_unset=True)
    width = updates.pop('width', None)
    thickness = updates.pop('thickness', None)
    if width is not None or thickness is not None:
        updates['rail_type'] = domain.RailType(
            width if width is not None else piece.rail_type.width,
            thickness if thickness is not None else piece.rail_type.thickness
        )

    try:
        updated = workshop.plans.update_piece_in_plan(plan_id, piece_id, **updates)
        if updated is None:
            raise HTTPException(status_code=404, detail="Деталь не найдена")
        return CutPiece.model_validate(updated)
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

@router.delete("/plans/{plan_id}/pieces/{piece_id}", response_model=StatusResponse)
def delete_piece(plan_id: str, piece_id: str, workshop: Workshop = Depends(get_workshop)):
    if not workshop.plans.remove_piece_from_plan(plan_id, piece_id):
        raise HTTPException(status_code=404, detail="Деталь не найдена")
    return StatusResponse(status="success", message="Деталь удалена")

@router.get("/plans/{plan_id}/material-plan", response_model=MaterialPlanPreview)
def preview_material_plan(plan_id: str, workshop: Workshop = Depends(get_workshop)):
    """
    План материалов по текущему складу (склад не меняется)
    """
    material_plan = workshop.work_orders.preview_material_plan(plan_id)
    if material_plan is None:
        raise HTTPException(status_code=404, detail="План не найден")

    return MaterialPlanPreview(
        **dict(MaterialPlan.model_validate(material_plan)),
        optimization_score=calculate_optimization_score(material_plan),
        shortfalls=[CutSuggestion.model_validate(s) for s in material_plan.shortfalls],
        by_type={
            label: [CutSuggestion.model_validate(s) for s in suggestions]
            for label, suggestions in group_suggestions_by_type(material_plan.suggestions).items()
        }
    )

# ========================================
# Наряды
# ========================================

@router.get("/work-orders", response_model=List[WorkOrderDetail])
def list_work_orders(plan_id: Optional[str] = None, workshop: Workshop = Depends(get_workshop)):
    if plan_id:
        work_orders = workshop.work_orders.get_work_orders_for_plan(plan_id)
    else:
        work_orders = workshop.work_orders.list_work_orders()
    return [_work_order_response(workshop, wo) for wo in work_orders]

@router.post("/work-orders", response_model=WorkOrderDetail)
def create_work_order(request: WorkOrderCreate, workshop: Workshop = Depends(get_workshop)):
    """
    Создать наряд по плану: снимок склада и плана материалов
    """
    work_order = workshop.work_orders.create_work_order(request.plan_id, request.notes)
    if work_order is None:
        raise HTTPException(status_code=404, detail="План не найден")
    return _work_order_response(workshop, work_order)

@router.get("/work-orders/{work_order_id}", response_model=WorkOrderDetail)
def get_work_order(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    return _work_order_response(workshop, _get_work_order_or_404(workshop, work_order_id))

@router.delete("/work-orders/{work_order_id}", response_model=StatusResponse)
def delete_work_order(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    if not workshop.work_orders.delete_work_order(work_order_id):
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return StatusResponse(status="success", message="Наряд удален")

@router.post("/work-orders/{work_order_id}/gathering-steps/{step_id}/confirm", response_model=WorkOrderDetail)
def confirm_gathering_step(work_order_id: str, step_id: str, workshop: Workshop = Depends(get_workshop)):
    work_order = workshop.work_orders.confirm_gathering_step(work_order_id, step_id)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

@router.get("/work-orders/{work_order_id}/rail-groups", response_model=List[RailGroup])
def list_rail_groups(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    work_order = _get_work_order_or_404(workshop, work_order_id)
    return [RailGroup.model_validate(group) for group in wo_logic.get_rail_groups(work_order)]

@router.post("/work-orders/{work_order_id}/rail-groups/{source_rail_id}/confirm", response_model=WorkOrderDetail)
def confirm_rail_group(work_order_id: str, source_rail_id: str,
                       request: Optional[RailGroupConfirmRequest] = None,
                       workshop: Workshop = Depends(get_workshop)):
    """
    Подтвердить распил шины: склад обновляется, индикатор ящика включается
    """
    executed_by = request.executed_by if request else None
    work_order = workshop.work_orders.confirm_rail_group(work_order_id, source_rail_id, executed_by)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

@router.get("/work-orders/{work_order_id}/returns", response_model=ReturnsResponse)
def get_returns(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    """
    Остатки к возврату (с ящиками) и суммарный отход
    """
    work_order = _get_work_order_or_404(workshop, work_order_id)
    remainders = [
        RemainderToReturn(
            **dict(RailGroupOutcome.model_validate(outcome)),
            led_id=get_led_id_for_length(outcome.remainder_length),
            box=get_box_description(outcome.remainder_length)
        )
        for outcome in wo_logic.get_remainders_to_return(work_order, workshop.settings)
    ]
    return ReturnsResponse(
        remainders=remainders,
        total_waste=wo_logic.get_total_waste(work_order, workshop.settings)
    )

@router.post("/work-orders/{work_order_id}/return", response_model=WorkOrderDetail)
def confirm_return(work_order_id: str, request: ReturnRequest, workshop: Workshop = Depends(get_workshop)):
    work_order = workshop.work_orders.confirm_return(work_order_id, request.notes)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

@router.post("/work-orders/{work_order_id}/advance", response_model=WorkOrderDetail)
def advance_phase(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    work_order = workshop.work_orders.advance_phase(work_order_id)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

@router.post("/work-orders/{work_order_id}/cancel", response_model=WorkOrderDetail)
def cancel_work_order(work_order_id: str, workshop: Workshop = Depends(get_workshop)):
    work_order = workshop.work_orders.cancel_work_order(work_order_id)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

@router.put("/work-orders/{work_order_id}/notes", response_model=WorkOrderDetail)
def update_notes(work_order_id: str, request: NotesRequest, workshop: Workshop = Depends(get_workshop)):
    work_order = workshop.work_orders.update_work_order_notes(work_order_id, request.notes)
    if work_order is None:
        raise HTTPException(status_code=404, detail="Наряд не найден")
    return _work_order_response(workshop, work_order)

# ========================================
# Индикаторы ящиков
# ========================================

@router.get("/led/box/{length}", response_model=BoxInfo)
def get_box_for_length(length: int):
    return BoxInfo(
        length=length,
        led_id=get_led_id_for_length(length),
        description=get_box_description(length)
    )
