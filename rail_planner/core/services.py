"""
Сервис нарядов: связывает чистую логику нарядов со складом, хранилищем и
индикаторами ящиков
"""

import copy
import logging
import threading
from typing import Callable, List, Optional

from . import work_order as wo_logic
from .inventory import InventoryService
from .led_api import LedClient
from .models import Rail, Plan, WorkOrder, MaterialPlan
from .optimizer import MaterialOptimizer, OptimizationSettings
from .plans import PlanService
from .serialization import (
    rail_to_dict, rail_from_dict, plan_to_dict, plan_from_dict,
    work_order_to_dict, work_order_from_dict
)
from .store import KeyValueStore, Repository, RAILS_KEY, PLANS_KEY, WORK_ORDERS_KEY

logger = logging.getLogger(__name__)


class WorkOrderService:
    """Выполнение нарядов на распил"""

    def __init__(self, repository: Repository[WorkOrder], plans: PlanService,
                 inventory: InventoryService, led_client: Optional[LedClient] = None,
                 settings: OptimizationSettings = None):
        self.repository = repository
        self.plans = plans
        self.inventory = inventory
        self.led_client = led_client
        self.settings = settings or OptimizationSettings()
        self._lock = threading.RLock()

    def list_work_orders(self) -> List[WorkOrder]:
        return self.repository.all()

    def get_work_order(self, work_order_id: str) -> Optional[WorkOrder]:
        return self.repository.get(work_order_id)

    def get_work_orders_for_plan(self, plan_id: str) -> List[WorkOrder]:
        return [wo for wo in self.repository.all() if wo.plan_id == plan_id]

    def preview_material_plan(self, plan_id: str) -> Optional[MaterialPlan]:
        """Прогон оптимизатора по копии склада, ничего не меняет"""
        plan = self.plans.get_plan(plan_id)
        if plan is None:
            return None
        return MaterialOptimizer(self.settings).generate_material_plan(plan, self.inventory.rails)

    def create_work_order(self, plan_id: str, notes: Optional[str] = None) -> Optional[WorkOrder]:
        with self._lock:
            plan = self.plans.get_plan(plan_id)
            if plan is None:
                return None
            work_order = wo_logic.create_work_order(plan, self.inventory.rails, self.settings, notes)
            self.repository.put(work_order)
            return work_order

    def confirm_gathering_step(self, work_order_id: str, step_id: str) -> Optional[WorkOrder]:
        return self._transition(
            work_order_id, lambda wo: wo_logic.confirm_gathering_step(wo, step_id)
        )

    def confirm_rail_group(self, work_order_id: str, source_rail_id: str,
                           executed_by: Optional[str] = None) -> Optional[WorkOrder]:
        """
        Подтвердить распил шины и применить результат к складу

        Списанная шина убирается со склада, годный остаток добавляется.
        """
        with self._lock:
            work_order = self.repository.get(work_order_id)
            if work_order is None:
                return None

            updated, outcome = wo_logic.confirm_rail_group(
                work_order, source_rail_id, self.settings, executed_by=executed_by
            )
            if outcome is None:
                return work_order

            self.inventory.apply_rail_group_outcome(outcome)
            self.repository.put(updated)
            logger.info(
                f"Наряд {work_order_id}: шина {source_rail_id} распилена, "
                f"остаток {outcome.remainder_length}мм, отход {outcome.waste_length}мм"
            )

        if outcome.remainder_length > 0 and self.led_client:
            self.led_client.turn_on_for_length(outcome.remainder_length)
        return updated

    def confirm_return(self, work_order_id: str, notes: Optional[str] = None) -> Optional[WorkOrder]:
        with self._lock:
            work_order = self.repository.get(work_order_id)
            if work_order is None:
                return None
            updated = wo_logic.confirm_return(work_order, notes)
            if updated is work_order:
                return work_order
            self.repository.put(updated)

        if self.led_client:
            for outcome in wo_logic.get_remainders_to_return(updated, self.settings):
                self.led_client.turn_off_for_length(outcome.remainder_length)
        return updated

    def advance_phase(self, work_order_id: str) -> Optional[WorkOrder]:
        return self._transition(work_order_id, wo_logic.advance_phase)

    def cancel_work_order(self, work_order_id: str) -> Optional[WorkOrder]:
        return self._transition(work_order_id, wo_logic.cancel_work_order)

    def update_work_order_notes(self, work_order_id: str, notes: Optional[str]) -> Optional[WorkOrder]:
        def set_notes(work_order: WorkOrder) -> WorkOrder:
            updated = copy.deepcopy(work_order)
            updated.notes = notes
            return updated

        return self._transition(work_order_id, set_notes)

    def delete_work_order(self, work_order_id: str) -> bool:
        return self.repository.remove(work_order_id)

    def _transition(self, work_order_id: str,
                    apply: Callable[[WorkOrder], WorkOrder]) -> Optional[WorkOrder]:
        with self._lock:
            work_order = self.repository.get(work_order_id)
            if work_order is None:
                return None
            updated = apply(work_order)
            if updated is not work_order:
                self.repository.put(updated)
            return updated


class Workshop:
    """Все сервисы мастерской поверх одного хранилища"""

    def __init__(self, store: KeyValueStore, settings: OptimizationSettings = None,
                 led_client: Optional[LedClient] = None):
        self.store = store
        self.settings = settings or OptimizationSettings()
        self.inventory = InventoryService(Repository[Rail](store, RAILS_KEY, rail_to_dict, rail_from_dict))
        self.plans = PlanService(Repository[Plan](store, PLANS_KEY, plan_to_dict, plan_from_dict))
        self.work_orders = WorkOrderService(
            Repository[WorkOrder](store, WORK_ORDERS_KEY, work_order_to_dict, work_order_from_dict),
            self.plans,
            self.inventory,
            led_client,
            self.settings,
        )
