"""
Rail Planner API
Сервис для учета шин, планов сборки и нарядов на распил
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from .modules.config import ENABLE_LOGGING, API_HOST, API_PORT
from .modules.routes import router

logging.basicConfig(
    level=logging.INFO if ENABLE_LOGGING else logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Создание приложения
app = FastAPI(
    title="Rail Planner API",
    description="API для планирования материалов и распила шин",
    version="1.0.0"
)

# Настройка CORS для работы с клиентом
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключение роутов
app.include_router(router, prefix="/api")

@app.get("/")
async def root():
    return {
        "service": "Rail Planner API",
        "status": "running",
        "version": "1.0.0"
    }


def run():
    uvicorn.run(app, host=API_HOST, port=API_PORT)


if __name__ == "__main__":
    run()
