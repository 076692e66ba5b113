"""
Планы сборки и их детали
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from .models import Plan, CutPiece, RailType, generate_id
from .serialization import export_plan, import_plan
from .store import Repository

logger = logging.getLogger(__name__)

# Пример плана: стандартный распределительный шкаф
EXAMPLE_PLAN = {
    'name': "Distribution Cabinet Type A",
    'description': "Standard 3-phase distribution cabinet with main bus bars and branch connections",
    'pieces': [
        (500, 3, "Main bus bar (L1, L2, L3)", RailType(30, 10)),
        (400, 1, "Neutral bus bar", RailType(20, 5)),
        (300, 1, "PE ground bar", RailType(20, 5)),
        (150, 6, "Branch connections", RailType(12, 5)),
        (100, 12, "Circuit breaker links", RailType(12, 5)),
        (80, 8, "Cross connectors", RailType(10, 3)),
    ],
}


class PlanService:
    """
    Работа с планами сборки

    Изменения плана (чтение и запись) выполняются под одной блокировкой,
    чтобы параллельные запросы не затирали друг друга.
    """

    def __init__(self, repository: Repository[Plan]):
        self.repository = repository
        self._lock = threading.RLock()

    def list_plans(self) -> List[Plan]:
        return self.repository.all()

    def get_plan(self, plan_id: str) -> Optional[Plan]:
        return self.repository.get(plan_id)

    def add_plan(self, name: str, description: Optional[str] = None,
                 required_pieces: List[CutPiece] = None) -> Plan:
        now = datetime.now()
        plan = Plan(
            id=generate_id(),
            name=name,
            description=description,
            required_pieces=list(required_pieces or []),
            created_at=now,
            updated_at=now,
        )
        self.repository.put(plan)
        logger.info(f"Создан план '{name}'")
        return plan

    def update_plan(self, plan_id: str, **updates) -> Optional[Plan]:
        for key in ('id', 'created_at', 'updated_at'):
            updates.pop(key, None)
        with self._lock:
            plan = self.repository.get(plan_id)
            if plan is None:
                return None
            updated = replace(plan, updated_at=datetime.now(), **updates)
            self.repository.put(updated)
            return updated

    def remove_plan(self, plan_id: str) -> bool:
        return self.repository.remove(plan_id)

    def add_piece_to_plan(self, plan_id: str, length: int, quantity: int, purpose: str,
                          rail_type: RailType) -> Optional[CutPiece]:
        with self._lock:
            plan = self.repository.get(plan_id)
            if plan is None:
                return None
            piece = CutPiece(id=generate_id(), length=length, quantity=quantity,
                             purpose=purpose, rail_type=rail_type)
            self.repository.put(replace(
                plan, required_pieces=plan.required_pieces + [piece], updated_at=datetime.now()
            ))
            return piece

    def update_piece_in_plan(self, plan_id: str, piece_id: str, **updates) -> Optional[CutPiece]:
        updates.pop('id', None)
        with self._lock:
            plan = self.repository.get(plan_id)
            if plan is None:
                return None
            piece = next((p for p in plan.required_pieces if p.id == piece_id), None)
            if piece is None:
                return None

            updated_piece = replace(piece, **updates)
            pieces = [updated_piece if p.id == piece_id else p for p in plan.required_pieces]
            self.repository.put(replace(plan, required_pieces=pieces, updated_at=datetime.now()))
            return updated_piece

    def remove_piece_from_plan(self, plan_id: str, piece_id: str) -> bool:
        with self._lock:
            plan = self.repository.get(plan_id)
            if plan is None:
                return False
            pieces = [p for p in plan.required_pieces if p.id != piece_id]
            if len(pieces) == len(plan.required_pieces):
                return False
            self.repository.put(replace(plan, required_pieces=pieces, updated_at=datetime.now()))
            return True

    def duplicate_plan(self, plan_id: str) -> Optional[Plan]:
        original = self.repository.get(plan_id)
        if original is None:
            return None
        return self.add_plan(
            name=f"{original.name} (Copy)",
            description=original.description,
            required_pieces=[replace(p, id=generate_id()) for p in original.required_pieces],
        )

    def import_plan(self, text: str) -> Plan:
        """Импортировать план из JSON (ValueError при неверном формате)"""
        plan = import_plan(text)
        self.repository.put(plan)
        logger.info(f"Импортирован план '{plan.name}' ({len(plan.required_pieces)} позиций)")
        return plan

    def export_plan(self, plan_id: str) -> Optional[str]:
        plan = self.repository.get(plan_id)
        if plan is None:
            return None
        return export_plan(plan)

    def add_example_plan(self) -> Plan:
        pieces = [
            CutPiece(id=generate_id(), length=length, quantity=quantity, purpose=purpose, rail_type=rail_type)
            for length, quantity, purpose, rail_type in EXAMPLE_PLAN['pieces']
        ]
        return self.add_plan(EXAMPLE_PLAN['name'], EXAMPLE_PLAN['description'], pieces)
