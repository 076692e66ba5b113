"""
Склад шин: добавление, списание, распил
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from .models import Rail, RailType, RailGroupOutcome, InventoryStats, SourceKind, generate_id
from .store import Repository

logger = logging.getLogger(__name__)

# Начальный набор шин для пустого склада: (длина, ширина, толщина, количество)
INITIAL_STOCK = [
    (2000, 12, 5, 5),
    (2000, 20, 5, 4),
    (1000, 12, 5, 3),
    (1000, 20, 5, 3),
    (3000, 30, 10, 2),
    (2000, 30, 10, 2),
    (1000, 10, 3, 4),
    (2000, 25, 5, 3),
]


class InventoryService:
    """Живой склад шин поверх репозитория"""

    def __init__(self, repository: Repository[Rail]):
        self.repository = repository
        # Чтение и запись склада в составных операциях
        self._lock = threading.RLock()

    @property
    def rails(self) -> List[Rail]:
        return self.repository.all()

    def get_rail(self, rail_id: str) -> Optional[Rail]:
        return self.repository.get(rail_id)

    def add_rail(self, length: int, width: int, thickness: int, is_remainder: bool = False,
                 original_rail_id: Optional[str] = None, notes: Optional[str] = None) -> Rail:
        """Добавить новую шину на склад"""
        rail = Rail(
            id=generate_id(),
            length=length,
            width=width,
            thickness=thickness,
            is_remainder=is_remainder,
            original_rail_id=original_rail_id,
            notes=notes,
            created_at=datetime.now(),
        )
        self.repository.put(rail)
        logger.info(f"Добавлена шина {rail.rail_type.label} {rail.length}мм{' (остаток)' if is_remainder else ''}")
        return rail

    def remove_rail(self, rail_id: str) -> bool:
        return self.repository.remove(rail_id)

    def update_rail(self, rail_id: str, **updates) -> Optional[Rail]:
        """Изменить поля шины (id и дата создания не меняются)"""
        updates.pop('id', None)
        updates.pop('created_at', None)
        with self._lock:
            rail = self.repository.get(rail_id)
            if rail is None:
                return None
            updated = replace(rail, **updates)
            self.repository.put(updated)
            return updated

    def cut_rail(self, rail_id: str, cut_length: int, purpose: Optional[str] = None) -> Optional[Rail]:
        """
        Отрезать кусок от шины

        Ненулевой обрезок всегда остается на складе как остаток.

        Returns:
            Новый остаток или None (шина израсходована полностью или распил невозможен)
        """
        with self._lock:
            rail = self.repository.get(rail_id)
            if rail is None:
                logger.warning(f"Распил невозможен: шина {rail_id} не найдена на складе")
                return None
            if cut_length <= 0 or cut_length > rail.length:
                logger.warning(f"Распил невозможен: {cut_length}мм из шины {rail.length}мм")
                return None

            remainder_length = rail.length - cut_length
            if remainder_length == 0:
                self.repository.remove(rail_id)
                return None

            note = f"Остаток после распила {cut_length}мм"
            if purpose:
                note += f" для: {purpose}"
            remainder = Rail(
                id=generate_id(),
                length=remainder_length,
                width=rail.width,
                thickness=rail.thickness,
                is_remainder=True,
                original_rail_id=rail.id,
                notes=note,
                created_at=datetime.now(),
            )
            self.repository.replace_all(
                [r for r in self.repository.all() if r.id != rail_id] + [remainder]
            )
            return remainder

    def get_rails_by_type(self, rail_type: RailType) -> List[Rail]:
        return [rail for rail in self.rails if rail.matches(rail_type)]

    def get_stats(self) -> InventoryStats:
        """Сводка по складу"""
        rails = self.rails
        stats = InventoryStats(
            total_rails=len(rails),
            total_length=sum(r.length for r in rails),
            remainder_count=sum(1 for r in rails if r.is_remainder),
            remainder_length=sum(r.length for r in rails if r.is_remainder),
        )
        for rail in rails:
            entry = stats.by_type.setdefault(rail.rail_type.label, {'count': 0, 'total_length': 0})
            entry['count'] += 1
            entry['total_length'] += rail.length
        return stats

    def clear_inventory(self):
        self.repository.replace_all([])

    def import_inventory(self, rails: List[Rail]) -> List[Rail]:
        """Добавить на склад импортированные шины (id уже должны быть новыми)"""
        with self._lock:
            self.repository.replace_all(self.repository.all() + list(rails))
        logger.info(f"Импортировано шин: {len(rails)}")
        return list(rails)

    def export_inventory(self) -> List[Rail]:
        return self.rails

    def add_initial_stock(self) -> List[Rail]:
        added = []
        for length, width, thickness, quantity in INITIAL_STOCK:
            for _ in range(quantity):
                added.append(self.add_rail(length, width, thickness, notes="Начальный запас"))
        return added

    def find_live_rail(self, source_rail_id: str, rail_type: RailType, length: int,
                       source_kind: SourceKind) -> Optional[Rail]:
        """
        Найти на складе шину, соответствующую шине из плана

        Новая шина из плана получает на складе другой id, поэтому для NEW_STOCK
        ищется цельная шина того же сечения и длины.
        """
        rail = self.repository.get(source_rail_id)
        if rail is not None:
            return rail
        if source_kind != SourceKind.NEW_STOCK:
            return None
        return next(
            (r for r in self.rails if not r.is_remainder and r.matches(rail_type) and r.length == length),
            None
        )

    def apply_rail_group_outcome(self, outcome: RailGroupOutcome) -> Optional[Rail]:
        """
        Списать распиленную шину и положить на склад годный остаток

        Returns:
            Новый остаток или None, если остатка нет
        """
        with self._lock:
            live_rail = self.find_live_rail(
                outcome.source_rail_id, outcome.rail_type, outcome.source_length, outcome.source_kind
            )
            if live_rail is not None:
                self.repository.remove(live_rail.id)
            elif outcome.source_kind != SourceKind.NEW_STOCK:
                logger.warning(f"⚠️ Шина {outcome.source_rail_id} не найдена на складе при списании")

            if outcome.remainder_length <= 0:
                return None

            return self.add_rail(
                length=outcome.remainder_length,
                width=outcome.rail_type.width,
                thickness=outcome.rail_type.thickness,
                is_remainder=True,
                original_rail_id=live_rail.id if live_rail else outcome.source_rail_id,
                notes=f"Остаток после распила {outcome.total_cut_length}мм для: {', '.join(outcome.purposes)}",
            )
