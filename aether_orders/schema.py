"""
テーブル定義

クエリは text() で直接書くが、DDL はここで一元管理する。
金額列は NUMERIC(12, 2)、ID はアプリ側で採番する UUID。
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Uuid,
)
from sqlalchemy.ext.asyncio import AsyncEngine

MONEY = Numeric(12, 2, asdecimal=True)
TIMESTAMP = DateTime(timezone=True)

metadata = MetaData()

customers = Table(
    "customers",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("tenant_id", Uuid, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("email", String(255)),
    Column("created_at", TIMESTAMP),
)

products = Table(
    "products",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("tenant_id", Uuid, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("price", MONEY, nullable=False),
    Column("stock_quantity", Integer, nullable=False, server_default="0"),
    CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
)

orders = Table(
    "orders",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("tenant_id", Uuid, nullable=False),
    Column("customer_id", Uuid, ForeignKey("customers.id"), nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("status", String(32), nullable=False),
    Column("created_at", TIMESTAMP, nullable=False),
    Index("ix_orders_tenant_created", "tenant_id", "created_at"),
)

order_items = Table(
    "order_items",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("order_id", Uuid, ForeignKey("orders.id"), nullable=False, index=True),
    Column("product_id", Uuid, ForeignKey("products.id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", MONEY, nullable=False),
    Column("total_price", MONEY, nullable=False),
    CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
)


async def init_db(engine: AsyncEngine) -> None:
    """未作成のテーブルを作る（開発・テスト用）。"""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
