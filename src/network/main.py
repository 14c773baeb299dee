"""
═══════════════════════════════════════════════════════════════════════════════
Network — Главная точка входа сервиса франчайзинговой сети
═══════════════════════════════════════════════════════════════════════════════

Фабрика приложения (Application Factory Pattern).

Точка входа владеет хранилищем: lifespan создаёт ``Database`` (или
``MemoryStore`` при ``USE_MEMORY_STORE`` / недоступной БД), применяет
миграции и закрывает пул на остановке. Тесты передают готовое
хранилище в ``create_app(store=...)``.
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from network import __version__
from network.config import NetworkSettings, get_settings
from network.database import Database
from network.events import EventPublisher
from network.exceptions import NetworkError
from network.memory_store import MemoryStore
from network.services.container import build_services

# ── Network API роутеры ──────────────────────────────────────────────────
from network.api.candidates import router as candidates_router
from network.api.dispatch import router as dispatch_router
from network.api.health import router as health_router
from network.api.maintenance import router as maintenance_router
from network.api.organizations import router as org_router
from network.api.royalties import router as royalties_router
from network.api.territories import router as territories_router

# ═══════════════════════════════════════════════════════════════════════════════
# Настройка логирования
# ═══════════════════════════════════════════════════════════════════════════════
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Маппинг кодов домена на HTTP-статусы
STATUS_MAP: dict[str, int] = {
    "NETWORK_NOT_FOUND": 404,
    "NETWORK_INVALID_STATE": 400,
    "NETWORK_CONFLICT": 409,
    "NETWORK_VALIDATION_ERROR": 400,
    "NETWORK_TRANSACTION_FAILURE": 500,
    "NETWORK_AUTH_ERROR": 401,
    "NETWORK_AUTHZ_ERROR": 403,
}


# ═══════════════════════════════════════════════════════════════════════════════
# Автоматическое применение SQL-миграций
# ═══════════════════════════════════════════════════════════════════════════════

async def _apply_migrations(db: Database) -> None:
    """Применяет SQL-миграции из ``network/db/migrations/``."""
    migrations_dir = Path(__file__).parent / "db" / "migrations"
    if not migrations_dir.is_dir():
        logger.info("No migrations directory found — skipping")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))
    if not sql_files:
        logger.info("No SQL migration files found — skipping")
        return

    async with db.connection() as conn:
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS _applied_migrations (
                filename TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            )
        """)

        rows = await conn.fetch("SELECT filename FROM _applied_migrations")
        applied = {row["filename"] for row in rows}

        for sql_file in sql_files:
            if sql_file.name in applied:
                continue

            logger.info(f"📄 Applying migration: {sql_file.name}")
            sql_text = sql_file.read_text(encoding="utf-8")
            async with conn.transaction():
                await conn.execute(sql_text)
                await conn.execute(
                    "INSERT INTO _applied_migrations (filename) VALUES ($1)",
                    sql_file.name,
                )
            logger.info(f"✅ Migration applied: {sql_file.name}")

    logger.info(f"✅ All Network migrations up to date ({len(sql_files)} files checked)")


async def open_store(settings: NetworkSettings):
    """
    Создаёт хранилище процесса.

    PostgreSQL недоступен → graceful degradation в MemoryStore.
    """
    if settings.use_memory_store:
        return await MemoryStore().connect()

    db = Database(settings)
    try:
        await db.connect()
        logger.info("✅ Network database pool initialized")
    except Exception as e:
        logger.warning(f"⚠️  Network DB not available — activating memory store: {e}")
        return await MemoryStore().connect()

    try:
        await _apply_migrations(db)
    except Exception as e:
        logger.warning(f"⚠️  Network migration apply failed (non-fatal): {e}")
    return db


def _bind_store(app: FastAPI, store, publisher: EventPublisher) -> None:
    app.state.store = store
    app.state.publisher = publisher
    app.state.services = build_services(store, get_settings(), publisher)


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan — управление жизненным циклом
# ═══════════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan Network-сервиса.

    Startup:
        1. Хранилище (если не передано в create_app): пул PostgreSQL
           + миграции, либо memory store.
        2. NATS publisher.

    Shutdown:
        1. NATS → хранилище (только созданное здесь).
    """
    settings = get_settings()
    logger.info(f"🚀 Network service v{__version__} starting...")
    logger.info(f"   Log level: {settings.log_level}")

    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        store = await open_store(settings)
        _bind_store(app, store, app.state.publisher)

    await app.state.publisher.connect()

    yield

    # Shutdown: NATS → DB
    try:
        await app.state.publisher.disconnect()
    except Exception as e:
        logger.warning(f"NATS disconnect failed: {e}")
    if owns_store:
        try:
            await app.state.store.close()
        except Exception as e:
            logger.warning(f"Store close failed: {e}")
    logger.info("🛑 Network service stopped")


# ═══════════════════════════════════════════════════════════════════════════════
# Фабрика приложения
# ═══════════════════════════════════════════════════════════════════════════════

def create_app(store=None, publisher: EventPublisher | None = None) -> FastAPI:
    """Создаёт и конфигурирует Network FastAPI-приложение."""
    settings = get_settings()

    _is_production = settings.app_env == "production"

    app = FastAPI(
        redirect_slashes=False,
        title="Network Service",
        description=(
            "Franchise network service: territory registry, record dispatch, "
            "candidate onboarding, royalty calculation and maintenance jobs."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url=None if _is_production else "/docs",
        redoc_url=None if _is_production else "/redoc",
        openapi_url=None if _is_production else "/api/v1/openapi.json",
    )

    publisher = publisher or EventPublisher(settings.nats_url, settings.events_enabled)
    app.state.store = None
    app.state.publisher = publisher
    if store is not None:
        _bind_store(app, store, publisher)

    # ── CORS middleware ──────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    )

    # ── Подключение API-роутеров ─────────────────────────────────────────
    network_router = APIRouter(prefix="/network")
    network_router.include_router(dispatch_router)
    network_router.include_router(territories_router)
    network_router.include_router(royalties_router)
    network_router.include_router(candidates_router)
    network_router.include_router(maintenance_router)
    network_router.include_router(org_router)

    v1_router = APIRouter(prefix="/api/v1")
    v1_router.include_router(network_router)
    v1_router.include_router(health_router)
    app.include_router(v1_router)

    # ── Глобальный обработчик NetworkError ───────────────────────────────
    @app.exception_handler(NetworkError)
    async def network_error_handler(request: Request, exc: NetworkError) -> JSONResponse:
        """Маппинг кодов Network на HTTP-статусы."""
        status_code = STATUS_MAP.get(exc.code, 500)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content=exc.to_payload(),
            headers=headers,
        )

    # ── Корневой эндпоинт ────────────────────────────────────────────────
    @app.get("/")
    async def root():
        return {
            "name": "Network Service",
            "version": __version__,
            "docs": "/docs",
            "api": {
                "v1": {
                    "health": "/api/v1/health",
                    "dispatch": "/api/v1/network/dispatch",
                    "territories": "/api/v1/network/territories",
                    "royalties": "/api/v1/network/royalties",
                    "candidates": "/api/v1/network/candidates",
                },
            },
        }

    return app


def main() -> None:
    """Запускает Network-сервис через Uvicorn."""
    settings = get_settings()
    logger.info(f"Starting Network server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        "network.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
