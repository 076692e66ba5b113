"""
Конфигурация для Rail Planner API
"""

import os
from dotenv import load_dotenv

# Загрузка переменных окружения
load_dotenv()

# Хранилище
DATA_DIR = os.getenv('DATA_DIR', './data')

# Настройки оптимизации
MIN_USABLE_LENGTH = int(os.getenv('MIN_USABLE_LENGTH', '50'))  # Минимальная длина делового остатка в мм
STANDARD_RAIL_LENGTHS = [
    int(length) for length in os.getenv('STANDARD_RAIL_LENGTHS', '1000,2000,3000,6000').split(',')
    if length.strip()
]

# Индикаторы ящиков для остатков
LED_API_BASE = os.getenv('LED_API_BASE', 'http://localhost:8081/api/led')
LED_API_TIMEOUT = float(os.getenv('LED_API_TIMEOUT', '2.0'))  # секунды
ENABLE_LED = os.getenv('ENABLE_LED', 'true').lower() == 'true'

# Настройки логирования
ENABLE_LOGGING = os.getenv('ENABLE_LOGGING', 'true').lower() == 'true'

# Настройки API
API_HOST = os.getenv('API_HOST', '0.0.0.0')
API_PORT = int(os.getenv('API_PORT', '8001'))
