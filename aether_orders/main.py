"""
Aether Orders: FastAPI エントリーポイント

注文の作成 (POST) と参照 (GET) を HTTP で公開する。
テナントは X-Tenant-ID ヘッダで受け取る（認証は上流の責務）。

ビジネスエラーとステータスコードの対応:
  OrderValidationError   → 400
  NotFoundError          → 404
  StockUnavailableError  → 409
  PersistenceError       → 500
  タイムアウト            → 504（トランザクションはロールバック済み）
  リクエスト形式の不正     → 422（FastAPI の検証）
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from uuid import UUID

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import Settings
from .db import create_engine, create_session_factory
from .errors import (
    NotFoundError,
    OrderValidationError,
    PersistenceError,
    StockUnavailableError,
)
from .models import LineItem, OrderDetails, OrderSummary
from .schema import init_db
from .service import OrderService

settings = Settings.from_env()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

engine = create_engine(settings.database_url, echo=settings.sql_echo)
async_session = create_session_factory(engine)
redis_pool: aioredis.Redis | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global redis_pool
    if settings.create_schema:
        await init_db(engine)
    if settings.redis_url:
        redis_pool = aioredis.from_url(settings.redis_url, decode_responses=True)
    else:
        logger.info("REDIS_URL not set, order events will not be published")
    yield
    if redis_pool is not None:
        await redis_pool.aclose()
        redis_pool = None
    await engine.dispose()


app = FastAPI(title="Aether Orders", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Dependencies ─────────────────────────────────


def get_settings() -> Settings:
    return settings


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session


def get_order_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> OrderService:
    return OrderService(session_factory, redis_pool)


# ── Request / Response Models ────────────────────


class CreateOrderItemRequest(BaseModel):
    product_id: UUID
    quantity: int = Field(gt=0)
    # 文字列でも数値でも Decimal に直接変換する（float 演算は通さない）
    unit_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)


class CreateOrderRequest(BaseModel):
    customer_id: UUID
    items: list[CreateOrderItemRequest]


class CreateOrderResponse(BaseModel):
    id: UUID
    message: str = "order created"


# ── Command Endpoints ────────────────────────────


@app.post("/api/orders", status_code=201, response_model=CreateOrderResponse)
async def create_order(
    req: CreateOrderRequest,
    tenant_id: UUID = Header(alias="X-Tenant-ID"),
    service: OrderService = Depends(get_order_service),
    config: Settings = Depends(get_settings),
):
    """注文作成"""
    items = [
        LineItem(product_id=i.product_id, quantity=i.quantity, unit_price=i.unit_price)
        for i in req.items
    ]
    try:
        order_id = await service.create_order(
            tenant_id, req.customer_id, items, timeout=config.order_timeout_seconds
        )
    except OrderValidationError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except StockUnavailableError as e:
        raise HTTPException(409, str(e))
    except PersistenceError:
        raise HTTPException(500, "failed to create order")
    except asyncio.TimeoutError:
        logger.warning("Order creation timed out: tenant=%s", tenant_id)
        raise HTTPException(504, "order creation timed out")
    return CreateOrderResponse(id=order_id)


# ── Query Endpoints ──────────────────────────────


@app.get("/api/orders", response_model=list[OrderSummary])
async def list_orders(
    tenant_id: UUID = Header(alias="X-Tenant-ID"),
    service: OrderService = Depends(get_order_service),
):
    """テナントの注文一覧（新しい順）"""
    try:
        return await service.list_orders(tenant_id)
    except PersistenceError:
        raise HTTPException(500, "failed to list orders")


@app.get("/api/orders/{order_id}", response_model=OrderDetails)
async def get_order_details(
    order_id: UUID,
    tenant_id: UUID = Header(alias="X-Tenant-ID"),
    service: OrderService = Depends(get_order_service),
):
    """注文詳細（明細つき）"""
    try:
        return await service.get_order_details(tenant_id, order_id)
    except NotFoundError:
        raise HTTPException(404, "Order not found")
    except PersistenceError:
        raise HTTPException(500, "failed to load order")


@app.get("/api/health")
async def health(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        raise HTTPException(503, "database unavailable")
    return {"status": "ok", "service": "aether-orders"}
