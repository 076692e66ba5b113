"""
Клиент индикаторов ящиков для остатков

Ящик 0: остатки от 100 до 300мм (не включая 300)
Ящик 1: остатки от 300мм
Короче 100мм - отход, индикатор не нужен
"""

import logging
import threading
from typing import Optional

import requests

logger = logging.getLogger(__name__)

LED_API_BASE = "http://localhost:8081/api/led"

SMALL_BOX_MIN_LENGTH = 100
LARGE_BOX_MIN_LENGTH = 300
BOX_IDS = (0, 1)


def get_led_id_for_length(length_mm: int) -> Optional[int]:
    """Номер ящика (и индикатора) для остатка данной длины"""
    if SMALL_BOX_MIN_LENGTH <= length_mm < LARGE_BOX_MIN_LENGTH:
        return 0
    if length_mm >= LARGE_BOX_MIN_LENGTH:
        return 1
    return None


def get_box_description(length_mm: int) -> str:
    led_id = get_led_id_for_length(length_mm)
    if led_id == 0:
        return "Small Remainder Box (10-30cm)"
    if led_id == 1:
        return "Large Remainder Box (≥30cm)"
    return "N/A"


class LedClient:
    """
    Клиент для управления индикаторами

    Ошибки связи только логируются: индикаторы не влияют на склад и наряды.
    При background=True запросы уходят в отдельном потоке.
    """

    def __init__(self, base_url: str = LED_API_BASE, timeout: float = 2.0,
                 enabled: bool = True, background: bool = False):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.enabled = enabled
        self.background = background
        self.session = requests.Session()

    def set_led_state(self, led_id: int, state: bool):
        """Включить или выключить индикатор"""
        if not self.enabled:
            return
        if self.background:
            threading.Thread(target=self._send, args=(led_id, state), daemon=True).start()
        else:
            self._send(led_id, state)

    def _send(self, led_id: int, state: bool):
        try:
            response = self.session.post(
                f"{self.base_url}/{led_id}",
                json={"state": state},
                timeout=self.timeout
            )
            if not response.ok:
                logger.warning(f"LED API вернул статус {response.status_code} для индикатора {led_id}")
        except requests.RequestException as e:
            logger.warning(f"Не удалось установить индикатор {led_id} в состояние {state}: {e}")

    def turn_on_for_length(self, length_mm: int):
        led_id = get_led_id_for_length(length_mm)
        if led_id is not None:
            self.set_led_state(led_id, True)

    def turn_off_for_length(self, length_mm: int):
        led_id = get_led_id_for_length(length_mm)
        if led_id is not None:
            self.set_led_state(led_id, False)

    def turn_off_all(self):
        for led_id in BOX_IDS:
            self.set_led_state(led_id, False)
