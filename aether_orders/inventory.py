"""
在庫台帳 (Inventory Ledger)

商品在庫数の唯一の書き込み口。

在庫の確認と減算は 1 本の条件付き UPDATE で行う。
SELECT してから UPDATE する 2 段階にすると、同時に走った 2 つの注文が
どちらも「在庫あり」を読んで両方成功してしまう。
PostgreSQL では UPDATE が行ロックを取り、後続は先行のコミット後に
WHERE 句を再評価するので、最後の 1 個を取り合っても成功は 1 件だけになる。
"""

from uuid import UUID

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import InsufficientStockError, ProductNotFoundError

_DECREMENT_IF_AVAILABLE = text("""
    UPDATE products
    SET stock_quantity = stock_quantity - :qty
    WHERE id = :id
      AND tenant_id = :tenant_id
      AND stock_quantity >= :qty
""")

_SELECT_STOCK = text("""
    SELECT stock_quantity
    FROM products
    WHERE id = :id AND tenant_id = :tenant_id
""")


async def decrement_if_available(
    session: AsyncSession,
    product_id: UUID,
    quantity: int,
    tenant_id: UUID,
) -> None:
    """
    在庫が quantity 以上ある場合だけ減算する。

    呼び出し側のトランザクション内で実行される。
    在庫不足なら InsufficientStockError、商品が存在しないか
    別テナントのものなら ProductNotFoundError。どちらも副作用なし。
    """
    result = await session.execute(
        _DECREMENT_IF_AVAILABLE,
        {"qty": quantity, "id": str(product_id), "tenant_id": str(tenant_id)},
    )
    if result.rowcount == 1:
        return

    # 0 行更新: 原因を切り分ける（読み取りのみ）
    available = await get_stock(session, product_id, tenant_id)
    if available is None:
        raise ProductNotFoundError(product_id)
    raise InsufficientStockError(product_id, quantity, available)


async def get_stock(
    session: AsyncSession,
    product_id: UUID,
    tenant_id: UUID,
) -> int | None:
    """テナント内の商品の在庫数。存在しなければ None。"""
    result = await session.execute(
        _SELECT_STOCK,
        {"id": str(product_id), "tenant_id": str(tenant_id)},
    )
    row = result.fetchone()
    if not row:
        return None
    return row.stock_quantity
