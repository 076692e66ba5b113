"""
Оптимизатор раскроя шин

Жадный алгоритм: детали обрабатываются по одной, от самой длинной к самой
короткой (First Fit Decreasing). Для каждой детали сначала ищется деловой
остаток, затем самая короткая подходящая шина. Если на складе ничего не
подходит, предлагается новая шина стандартной длины.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import List, Dict, Optional, Tuple

from .models import (
    Rail, CutPiece, Plan, CutSuggestion, MaterialPlan, SourceKind,
    MIN_USABLE_LENGTH, STANDARD_RAIL_LENGTHS, NEW_RAIL_ID_PREFIX, generate_id
)

logger = logging.getLogger(__name__)


@dataclass
class OptimizationSettings:
    """Настройки оптимизации раскроя"""
    min_usable_length: int = MIN_USABLE_LENGTH  # Минимальная длина делового остатка в мм
    standard_lengths: List[int] = field(default_factory=lambda: list(STANDARD_RAIL_LENGTHS))  # Длины новых шин

    def __post_init__(self):
        self.standard_lengths = sorted(self.standard_lengths)


def source_kind_for_rail(rail: Rail) -> SourceKind:
    """Определить источник шины по ее признакам"""
    if rail.is_planned:
        return SourceKind.NEW_STOCK
    if rail.is_remainder:
        return SourceKind.REMAINDER
    return SourceKind.INVENTORY


def find_smallest_sufficient_standard_length(required_length: int,
                                             standard_lengths: List[int] = None) -> int:
    """
    Найти минимальную стандартную длину, из которой можно отрезать деталь.
    Если деталь длиннее любой стандартной шины, возвращается самая длинная.
    """
    lengths = sorted(standard_lengths or STANDARD_RAIL_LENGTHS)
    for standard_length in lengths:
        if standard_length >= required_length:
            return standard_length
    return lengths[-1]


class MaterialOptimizer:
    """
    Оптимизатор материалов для плана сборки
    """

    def __init__(self, settings: OptimizationSettings = None):
        self.settings = settings or OptimizationSettings()

    def find_best_rail_for_piece(self, stock: List[Rail], piece: CutPiece) -> Optional[CutSuggestion]:
        """
        Подобрать шину со склада для одной детали (количество игнорируется)

        Приоритеты:
            1. Деловые остатки раньше цельных шин
            2. Самая короткая подходящая шина

        Returns:
            CutSuggestion или None, если подходящей шины нет
        """
        candidates = [
            rail for rail in stock
            if rail.matches(piece.rail_type) and rail.length >= piece.length
        ]
        if not candidates:
            return None

        # sorted() устойчива: при равных ключах сохраняется порядок склада
        best_rail = sorted(candidates, key=lambda r: (not r.is_remainder, r.length))[0]
        leftover = best_rail.length - piece.length
        remainder_length, waste = self._split_leftover(leftover)

        return CutSuggestion(
            source_rail=best_rail,
            piece=piece,
            remainder_length=remainder_length,
            waste=waste,
            is_optimal=best_rail.is_remainder or leftover < self.settings.min_usable_length,
            source_kind=source_kind_for_rail(best_rail),
        )

    def generate_material_plan(self, plan: Plan, stock: List[Rail]) -> MaterialPlan:
        """
        Построить план материалов для всего плана сборки

        Args:
            plan: План с перечнем деталей
            stock: Текущий склад (не изменяется)

        Returns:
            MaterialPlan: предложения в порядке обработки деталей
        """
        suggestions = []
        total_waste = 0
        used_remainders = 0
        new_rails_needed = 0

        pieces = self._expand_pieces(plan)
        pieces.sort(key=lambda p: -p.length)

        # Рабочая копия склада: остаток сохраняет id физической шины
        working_stock = [replace(rail) for rail in stock]
        kinds: Dict[str, SourceKind] = {rail.id: source_kind_for_rail(rail) for rail in working_stock}

        for piece in pieces:
            suggestion = self.find_best_rail_for_piece(working_stock, piece)

            if suggestion:
                rail = suggestion.source_rail
                suggestion.source_kind = kinds.get(rail.id, suggestion.source_kind)
                index = next(i for i, r in enumerate(working_stock) if r.id == rail.id)

                if suggestion.remainder_length > 0:
                    working_stock[index] = self._make_working_remainder(rail, suggestion.remainder_length)
                else:
                    del working_stock[index]

                if rail.is_remainder:
                    used_remainders += 1
            else:
                suggestion = self._suggest_new_rail(piece)
                kinds[suggestion.source_rail.id] = SourceKind.NEW_STOCK

                if suggestion.remainder_length > 0:
                    working_stock.append(
                        self._make_working_remainder(suggestion.source_rail, suggestion.remainder_length)
                    )
                new_rails_needed += 1

            total_waste += suggestion.waste
            suggestions.append(suggestion)

        logger.info(
            f"План материалов '{plan.name}': {len(suggestions)} распилов, "
            f"остатков использовано {used_remainders}, новых шин {new_rails_needed}, отход {total_waste}мм"
        )

        return MaterialPlan(
            plan=plan,
            suggestions=suggestions,
            total_waste=total_waste,
            used_remainders=used_remainders,
            new_rails_needed=new_rails_needed,
        )

    def _expand_pieces(self, plan: Plan) -> List[CutPiece]:
        """Развернуть детали по количеству в отдельные единицы"""
        pieces = []
        for piece in plan.required_pieces:
            for _ in range(piece.quantity):
                pieces.append(replace(piece, id=generate_id(), quantity=1))
        return pieces

    def _split_leftover(self, leftover: int) -> Tuple[int, int]:
        """Разделить обрезок на деловой остаток и отход"""
        if leftover <= 0:
            return 0, 0
        if leftover >= self.settings.min_usable_length:
            return leftover, 0
        return 0, leftover

    def _make_working_remainder(self, rail: Rail, length: int) -> Rail:
        return replace(
            rail,
            length=length,
            is_remainder=True,
            original_rail_id=rail.id,
        )

    def _suggest_new_rail(self, piece: CutPiece) -> CutSuggestion:
        """Предложить новую шину стандартной длины"""
        standard_length = find_smallest_sufficient_standard_length(
            piece.length, self.settings.standard_lengths
        )
        new_rail = Rail(
            id=f"{NEW_RAIL_ID_PREFIX}{generate_id()}",
            length=standard_length,
            width=piece.rail_type.width,
            thickness=piece.rail_type.thickness,
            is_remainder=False,
        )

        leftover = standard_length - piece.length
        shortfall = 0
        if leftover < 0:
            shortfall = -leftover
            logger.warning(
                f"⚠️ Деталь '{piece.purpose}' ({piece.length}мм) длиннее самой длинной "
                f"стандартной шины {standard_length}мм, не хватает {shortfall}мм"
            )
        remainder_length, waste = self._split_leftover(leftover)

        return CutSuggestion(
            source_rail=new_rail,
            piece=piece,
            remainder_length=remainder_length,
            waste=waste,
            is_optimal=0 <= leftover < self.settings.min_usable_length,
            source_kind=SourceKind.NEW_STOCK,
            shortfall=shortfall,
        )


def calculate_optimization_score(material_plan: MaterialPlan) -> int:
    """
    Оценка качества раскроя от 0 до 100 (чем больше, тем лучше)
    """
    total_material_used = sum(s.source_rail.length for s in material_plan.suggestions)
    total_required = sum(s.piece.length for s in material_plan.suggestions)

    if total_material_used == 0:
        return 100

    efficiency = total_required / total_material_used * 100
    remainder_bonus = material_plan.used_remainders * 5

    return min(100, round(efficiency + remainder_bonus))


def group_suggestions_by_type(suggestions: List[CutSuggestion]) -> Dict[str, List[CutSuggestion]]:
    """Сгруппировать предложения по сечению шины"""
    groups: Dict[str, List[CutSuggestion]] = {}
    for suggestion in suggestions:
        groups.setdefault(suggestion.piece.rail_type.label, []).append(suggestion)
    return groups


# Функции для прямого вызова
def find_best_rail_for_piece(stock: List[Rail], piece: CutPiece,
                             settings: OptimizationSettings = None) -> Optional[CutSuggestion]:
    return MaterialOptimizer(settings).find_best_rail_for_piece(stock, piece)


def generate_material_plan(plan: Plan, stock: List[Rail],
                           settings: OptimizationSettings = None) -> MaterialPlan:
    return MaterialOptimizer(settings).generate_material_plan(plan, stock)
