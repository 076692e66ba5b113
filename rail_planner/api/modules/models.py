"""
Модели запросов и ответов для Rail Planner API
"""

from pydantic import BaseModel, ConfigDict, field_validator
from typing import List, Optional, Dict
from datetime import datetime

from ...core.models import SourceKind, WorkOrderStatus, WorkOrderPhase

# ========================================
# Запросы
# ========================================

# Склад

class RailCreate(BaseModel):
    """Новая шина на складе"""
    length: int  # Длина в мм
    width: int  # Ширина сечения в мм
    thickness: int  # Толщина сечения в мм
    is_remainder: bool = False
    original_rail_id: Optional[str] = None
    notes: Optional[str] = None

class RailUpdate(BaseModel):
    """Изменение шины (передаются только изменяемые поля, null допустим для notes и original_rail_id)"""
    length: Optional[int] = None
    width: Optional[int] = None
    thickness: Optional[int] = None
    is_remainder: Optional[bool] = None
    original_rail_id: Optional[str] = None
    notes: Optional[str] = None

    @field_validator('length', 'width', 'thickness', 'is_remainder')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Поле не может быть null")
        return v

class CutRequest(BaseModel):
    """Ручной распил шины"""
    cut_length: int  # Отрезаемая длина в мм
    purpose: Optional[str] = None

class ImportRequest(BaseModel):
    """Импорт из JSON-документа"""
    content: str

# Планы

class PlanCreate(BaseModel):
    name: str
    description: Optional[str] = None

class PlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

    @field_validator('name')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Название плана не может быть null")
        return v

class PieceCreate(BaseModel):
    """Деталь плана"""
    length: int  # Требуемая длина в мм
    quantity: int = 1
    purpose: str
    width: int  # Сечение шины
    thickness: int

class PieceUpdate(BaseModel):
    length: Optional[int] = None
    quantity: Optional[int] = None
    purpose: Optional[str] = None
    width: Optional[int] = None
    thickness: Optional[int] = None

    @field_validator('length', 'quantity', 'purpose', 'width', 'thickness')
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Поле не может быть null")
        return v

# Наряды

class WorkOrderCreate(BaseModel):
    plan_id: str
    notes: Optional[str] = None

class RailGroupConfirmRequest(BaseModel):
    """Подтверждение распила шины"""
    executed_by: Optional[str] = None  # Кто выполнил распил

class ReturnRequest(BaseModel):
    """Подтверждение возврата остатков"""
    notes: Optional[str] = None

class NotesRequest(BaseModel):
    notes: Optional[str] = None

# ========================================
# Ответы
# ========================================

class ApiModel(BaseModel):
    """Ответ, собираемый из атрибутов доменных объектов"""
    model_config = ConfigDict(from_attributes=True)

class StatusResponse(BaseModel):
    status: str
    message: Optional[str] = None

class ImportResponse(BaseModel):
    status: str
    imported: int  # Сколько шин добавлено

class InitialStockResponse(BaseModel):
    status: str
    added: int

class ExportResponse(BaseModel):
    """JSON-документ для последующего импорта"""
    content: str

# Склад

class RailType(ApiModel):
    width: int
    thickness: int
    label: str  # Например "12×5mm"

class Rail(ApiModel):
    id: str
    length: int  # Длина в мм
    width: int
    thickness: int
    is_remainder: bool
    original_rail_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

class CutResponse(BaseModel):
    remainder: Optional[Rail] = None  # None - шина израсходована полностью

class InventoryStats(ApiModel):
    total_rails: int
    total_length: int  # Суммарная длина в мм
    remainder_count: int
    remainder_length: int
    by_type: Dict[str, Dict[str, int]]  # {сечение: {count, total_length}}

# Планы

class CutPiece(ApiModel):
    id: str
    length: int
    quantity: int
    purpose: str
    rail_type: RailType

class Plan(ApiModel):
    id: str
    name: str
    description: Optional[str] = None
    required_pieces: List[CutPiece]
    total_pieces: int
    created_at: datetime
    updated_at: datetime

class CutSuggestion(ApiModel):
    """Предложение оптимизатора для одной детали"""
    source_rail: Rail
    piece: CutPiece
    remainder_length: int
    waste: int
    is_optimal: bool
    source_kind: SourceKind
    shortfall: int  # На сколько мм шина короче детали

class MaterialPlan(ApiModel):
    plan: Plan
    suggestions: List[CutSuggestion]
    total_waste: int
    used_remainders: int
    new_rails_needed: int

class MaterialPlanPreview(MaterialPlan):
    """План материалов с оценкой и разбивкой по сечениям"""
    optimization_score: int  # 0-100
    shortfalls: List[CutSuggestion]
    by_type: Dict[str, List[CutSuggestion]]

# Наряды

class GatheringStep(ApiModel):
    id: str
    rail_type: RailType
    source_rail_id: str
    length: int
    is_remainder: bool
    is_from_new_stock: bool
    confirmed: bool
    confirmed_at: Optional[datetime] = None

class CuttingStep(ApiModel):
    id: str
    suggestion_index: int
    source_rail_id: str
    piece_id: str
    rail_type: RailType
    source_length: int
    cut_length: int
    remainder_length: int
    waste_length: int
    purpose: str
    source_kind: SourceKind
    confirmed: bool
    confirmed_at: Optional[datetime] = None

class ReturnConfirmation(ApiModel):
    confirmed: bool
    confirmed_at: Optional[datetime] = None
    notes: Optional[str] = None

class ExecutedCut(ApiModel):
    id: str
    suggestion_index: int
    piece_id: str
    source_rail_id: str
    cut_length: int
    executed_at: datetime
    executed_by: Optional[str] = None

class RailGroup(ApiModel):
    """Все распилы одной физической шины"""
    source_rail_id: str
    rail_type: RailType
    source_length: int
    source_kind: SourceKind
    total_cut_length: int
    remaining: int  # Отрицательный - шина короче деталей
    confirmed: bool
    steps: List[CuttingStep]

class WorkOrderProgress(BaseModel):
    gathering_confirmed: int
    gathering_total: int
    cutting_confirmed: int
    cutting_total: int
    rail_groups_confirmed: int
    rail_groups_total: int

class WorkOrder(ApiModel):
    id: str
    plan_id: str
    plan_name: str
    status: WorkOrderStatus
    phase: WorkOrderPhase
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    gathering_steps: List[GatheringStep]
    cutting_steps: List[CuttingStep]
    return_confirmation: ReturnConfirmation
    executed_cuts: List[ExecutedCut]
    notes: Optional[str] = None
    material_plan_snapshot: MaterialPlan

class WorkOrderDetail(WorkOrder):
    """Наряд вместе с прогрессом и текущей шиной"""
    progress: WorkOrderProgress
    can_advance: bool
    current_rail_group: Optional[RailGroup] = None
    total_waste: int

class RailGroupOutcome(ApiModel):
    """Результат распила шины для склада"""
    source_rail_id: str
    rail_type: RailType
    source_kind: SourceKind
    source_length: int
    total_cut_length: int
    remainder_length: int
    waste_length: int
    purposes: List[str]

class RemainderToReturn(RailGroupOutcome):
    """Остаток, который нужно вернуть на склад"""
    led_id: Optional[int] = None  # Индикатор ящика
    box: str

class ReturnsResponse(BaseModel):
    remainders: List[RemainderToReturn]
    total_waste: int

# Индикаторы

class BoxInfo(BaseModel):
    """Ящик для остатка заданной длины"""
    length: int
    led_id: Optional[int] = None  # None - остаток не хранится в ящиках
    description: str
