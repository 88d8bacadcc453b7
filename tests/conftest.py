"""
共通 pytest フィクスチャ

テストごとに一時ファイルの SQLite を作り、本番と同じ DDL を流す。
エンジンは BEGIN IMMEDIATE 設定込みなので、同時実行のテストも実際に
ロック待ちを伴って動く。
"""

import os
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import text

# main を import する前に DB を差し替える
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "")

from aether_orders import inventory  # noqa: E402
from aether_orders.db import create_engine, create_session_factory  # noqa: E402
from aether_orders.schema import init_db  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


class Store:
    """テストデータの投入と検証用の読み取り"""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _write(self, sql: str, params: dict) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                await session.execute(text(sql), params)

    async def add_customer(self, tenant_id: UUID, name: str = "Maria Silva") -> UUID:
        customer_id = uuid4()
        await self._write(
            "INSERT INTO customers (id, tenant_id, name, email) "
            "VALUES (:id, :tenant_id, :name, :email)",
            {
                "id": str(customer_id),
                "tenant_id": str(tenant_id),
                "name": name,
                "email": f"{name.split()[0].lower()}@example.com",
            },
        )
        return customer_id

    async def add_product(
        self,
        tenant_id: UUID,
        name: str,
        stock: int,
        price: str = "10.00",
    ) -> UUID:
        product_id = uuid4()
        await self._write(
            "INSERT INTO products (id, tenant_id, name, price, stock_quantity) "
            "VALUES (:id, :tenant_id, :name, :price, :stock)",
            {
                "id": str(product_id),
                "tenant_id": str(tenant_id),
                "name": name,
                "price": price,
                "stock": stock,
            },
        )
        return product_id

    async def stock(self, tenant_id: UUID, product_id: UUID) -> int | None:
        async with self.session_factory() as session:
            return await inventory.get_stock(session, product_id, tenant_id)

    async def count(self, table: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(text(f"SELECT COUNT(*) FROM {table}"))
            return result.scalar_one()


@pytest.fixture
def store(session_factory) -> Store:
    return Store(session_factory)
