"""
Ядро Rail Planner: модели, оптимизатор, наряды, склад и хранилище
"""

from .models import (
    Rail, RailType, CutPiece, Plan, CutSuggestion, MaterialPlan, SourceKind,
    WorkOrder, WorkOrderStatus, WorkOrderPhase, RailGroup, RailGroupOutcome,
    STANDARD_RAIL_LENGTHS, MIN_USABLE_LENGTH, COMMON_RAIL_TYPES
)
from .optimizer import MaterialOptimizer, OptimizationSettings
from .store import KeyValueStore, MemoryStore, JsonFileStore, Repository
from .services import WorkOrderService, Workshop

__all__ = [
    'Rail',
    'RailType',
    'CutPiece',
    'Plan',
    'CutSuggestion',
    'MaterialPlan',
    'SourceKind',
    'WorkOrder',
    'WorkOrderStatus',
    'WorkOrderPhase',
    'RailGroup',
    'RailGroupOutcome',
    'STANDARD_RAIL_LENGTHS',
    'MIN_USABLE_LENGTH',
    'COMMON_RAIL_TYPES',
    'MaterialOptimizer',
    'OptimizationSettings',
    'KeyValueStore',
    'MemoryStore',
    'JsonFileStore',
    'Repository',
    'WorkOrderService',
    'Workshop',
]
