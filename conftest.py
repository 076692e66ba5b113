"""
Общие фикстуры для тестов Rail Planner
"""

import threading
import time
from unittest.mock import Mock

import pytest

from rail_planner.core.led_api import LedClient
from rail_planner.core.models import Rail, CutPiece, Plan, RailType, generate_id
from rail_planner.core.optimizer import OptimizationSettings
from rail_planner.core.services import Workshop
from rail_planner.core.store import MemoryStore


def make_rail(length, width=12, thickness=5, is_remainder=False, rail_id=None):
    return Rail(
        id=rail_id or generate_id(),
        length=length,
        width=width,
        thickness=thickness,
        is_remainder=is_remainder,
    )


def make_piece(length, quantity=1, width=12, thickness=5, purpose="Деталь"):
    return CutPiece(
        id=generate_id(),
        length=length,
        quantity=quantity,
        purpose=purpose,
        rail_type=RailType(width, thickness),
    )


def make_plan(*pieces, name="Тестовый шкаф"):
    return Plan(id=generate_id(), name=name, required_pieces=list(pieces))


class SlowStore(MemoryStore):
    """Хранилище с задержкой записи: расширяет окно гонки между потоками"""

    def put(self, key, value):
        time.sleep(0.001)
        super().put(key, value)


def run_in_threads(target, thread_count=4):
    threads = [threading.Thread(target=target) for _ in range(thread_count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


@pytest.fixture
def settings():
    return OptimizationSettings()


@pytest.fixture
def led_client():
    return Mock(spec=LedClient)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def workshop(store, led_client):
    return Workshop(store, OptimizationSettings(), led_client)
