"""
Модели данных для Rail Planner
"""

import uuid
from dataclasses import dataclass, field
from typing import List, Dict, Optional
from datetime import datetime
from enum import Enum

# Стандартные длины новых шин, доступных для закупки (мм)
STANDARD_RAIL_LENGTHS = [1000, 2000, 3000, 6000]

# Минимальная длина делового остатка (мм)
MIN_USABLE_LENGTH = 50

# Префикс идентификаторов шин, которые оптимизатор предлагает взять из новой поставки
NEW_RAIL_ID_PREFIX = "new-"


def generate_id() -> str:
    """Сгенерировать новый уникальный идентификатор"""
    return str(uuid.uuid4())


class SourceKind(Enum):
    """Откуда берется исходная шина для распила"""
    INVENTORY = "inventory"   # Цельная шина со склада
    REMAINDER = "remainder"   # Деловой остаток со склада
    NEW_STOCK = "new-stock"   # Новая шина, которой еще нет на складе


class WorkOrderStatus(Enum):
    """Статус наряда (жив / закрыт)"""
    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkOrderStatus.COMPLETED, WorkOrderStatus.CANCELLED)


class WorkOrderPhase(Enum):
    """Этап выполнения наряда"""
    GATHERING = "gathering"   # Сбор шин
    CUTTING = "cutting"       # Распил
    RETURNING = "returning"   # Возврат остатков
    COMPLETED = "completed"   # Завершен


# Фазы строго последовательны, пропуск и возврат назад невозможны
PHASE_SEQUENCE = [
    WorkOrderPhase.GATHERING,
    WorkOrderPhase.CUTTING,
    WorkOrderPhase.RETURNING,
    WorkOrderPhase.COMPLETED,
]


@dataclass(frozen=True)
class RailType:
    """Сечение шины (ширина x толщина)"""
    width: int
    thickness: int
    label: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.label:
            object.__setattr__(self, 'label', f"{self.width}×{self.thickness}mm")


COMMON_RAIL_TYPES = [
    RailType(10, 3),
    RailType(12, 5),
    RailType(15, 5),
    RailType(20, 5),
    RailType(20, 10),
    RailType(25, 5),
    RailType(30, 5),
    RailType(30, 10),
    RailType(40, 5),
    RailType(40, 10),
]


@dataclass
class Rail:
    """Шина на складе"""
    id: str
    length: int  # Длина в мм
    width: int  # Ширина сечения в мм
    thickness: int  # Толщина сечения в мм
    is_remainder: bool = False  # Является ли деловым остатком
    original_rail_id: Optional[str] = None  # Шина, из которой получен остаток
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.length <= 0:
            raise ValueError(f"Длина шины должна быть больше нуля, получено {self.length}")

    @property
    def rail_type(self) -> RailType:
        return RailType(self.width, self.thickness)

    @property
    def is_planned(self) -> bool:
        """Шина предложена оптимизатором и еще не поступила на склад"""
        return self.id.startswith(NEW_RAIL_ID_PREFIX)

    def matches(self, rail_type: RailType) -> bool:
        return self.width == rail_type.width and self.thickness == rail_type.thickness


@dataclass
class CutPiece:
    """Деталь, которую нужно отрезать"""
    id: str
    length: int  # Требуемая длина в мм
    quantity: int  # Количество одинаковых деталей
    purpose: str  # Назначение детали
    rail_type: RailType

    def __post_init__(self):
        if self.length <= 0:
            raise ValueError(f"Длина детали должна быть больше нуля, получено {self.length}")
        if self.quantity < 1:
            raise ValueError(f"Количество деталей должно быть не меньше 1, получено {self.quantity}")


@dataclass
class Plan:
    """План сборки: перечень необходимых деталей"""
    id: str
    name: str
    required_pieces: List[CutPiece] = field(default_factory=list)
    description: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def total_pieces(self) -> int:
        return sum(piece.quantity for piece in self.required_pieces)


@dataclass
class CutSuggestion:
    """Предложение оптимизатора для одной детали"""
    source_rail: Rail
    piece: CutPiece
    remainder_length: int  # Деловой остаток (0, если меньше минимума)
    waste: int  # Отход (0, если остаток годный)
    is_optimal: bool
    source_kind: SourceKind = SourceKind.INVENTORY
    shortfall: int = 0  # На сколько мм исходная шина короче детали


@dataclass
class MaterialPlan:
    """Результат одного прогона оптимизатора"""
    plan: Plan
    suggestions: List[CutSuggestion]
    total_waste: int = 0
    used_remainders: int = 0
    new_rails_needed: int = 0

    @property
    def shortfalls(self) -> List[CutSuggestion]:
        return [s for s in self.suggestions if s.shortfall > 0]


@dataclass
class GatheringStep:
    """Шаг сбора: взять одну физическую шину"""
    id: str
    rail_type: RailType
    source_rail_id: str
    length: int
    is_remainder: bool
    is_from_new_stock: bool
    confirmed: bool = False
    confirmed_at: Optional[datetime] = None


@dataclass
class CuttingStep:
    """Шаг распила: отрезать одну деталь"""
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
    source_kind: SourceKind = SourceKind.INVENTORY
    confirmed: bool = False
    confirmed_at: Optional[datetime] = None


@dataclass
class ReturnConfirmation:
    """Подтверждение возврата остатков на склад"""
    confirmed: bool = False
    confirmed_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass
class ExecutedCut:
    """Запись журнала выполненных распилов"""
    id: str
    suggestion_index: int
    piece_id: str
    source_rail_id: str
    cut_length: int
    executed_at: datetime = field(default_factory=datetime.now)
    executed_by: Optional[str] = None


@dataclass
class RailGroup:
    """Все распилы одной физической шины"""
    source_rail_id: str
    rail_type: RailType
    source_length: int
    source_kind: SourceKind
    steps: List[CuttingStep] = field(default_factory=list)

    @property
    def total_cut_length(self) -> int:
        return sum(step.cut_length for step in self.steps)

    @property
    def remaining(self) -> int:
        return self.source_length - self.total_cut_length

    @property
    def confirmed(self) -> bool:
        return all(step.confirmed for step in self.steps)


@dataclass
class RailGroupOutcome:
    """Что нужно сделать со складом после распила шины"""
    source_rail_id: str
    rail_type: RailType
    source_kind: SourceKind
    source_length: int
    total_cut_length: int
    remainder_length: int  # Годный остаток, который вернется на склад
    waste_length: int  # Отход, который нужно утилизировать
    purposes: List[str] = field(default_factory=list)


@dataclass
class WorkOrder:
    """Наряд на распил по плану"""
    id: str
    plan_id: str
    plan_name: str
    material_plan_snapshot: MaterialPlan
    status: WorkOrderStatus = WorkOrderStatus.DRAFT
    phase: WorkOrderPhase = WorkOrderPhase.GATHERING
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    gathering_steps: List[GatheringStep] = field(default_factory=list)
    cutting_steps: List[CuttingStep] = field(default_factory=list)
    return_confirmation: ReturnConfirmation = field(default_factory=ReturnConfirmation)
    executed_cuts: List[ExecutedCut] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class InventoryStats:
    """Сводка по складу"""
    total_rails: int = 0
    total_length: int = 0
    remainder_count: int = 0
    remainder_length: int = 0
    by_type: Dict[str, Dict[str, int]] = field(default_factory=dict)
