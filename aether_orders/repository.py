"""
注文リポジトリ (Order Repository)

orders / order_items テーブルへの書き込みと読み取り。

書き込みは呼び出し側のセッション（= トランザクション）上で行い、
コミットはしない。在庫の減算と同じ単位でコミット / ロールバックされる。
"""

from collections.abc import AsyncIterator, Sequence
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError
from .models import OrderItemView, OrderStatus, OrderSummary, PricedLine
from .money import Money
from .schema import MONEY, TIMESTAMP

_INSERT_ORDER = text("""
    INSERT INTO orders
        (id, tenant_id, customer_id, total_amount, status, created_at)
    VALUES
        (:id, :tenant_id, :customer_id, :total_amount, :status, :created_at)
""").bindparams(
    bindparam("total_amount", type_=MONEY),
    bindparam("created_at", type_=TIMESTAMP),
)

_INSERT_ORDER_ITEM = text("""
    INSERT INTO order_items
        (id, order_id, product_id, quantity, unit_price, total_price)
    VALUES
        (:id, :order_id, :product_id, :quantity, :unit_price, :total_price)
""").bindparams(
    bindparam("unit_price", type_=MONEY),
    bindparam("total_price", type_=MONEY),
)

_SUMMARY_COLUMNS = """
    SELECT o.id, c.name AS customer_name, o.total_amount, o.status, o.created_at
    FROM orders o
    JOIN customers c ON c.id = o.customer_id
"""

_LIST_ORDERS = text(
    _SUMMARY_COLUMNS
    + """
    WHERE o.tenant_id = :tenant_id
    ORDER BY o.created_at DESC, o.id
"""
).columns(total_amount=MONEY, created_at=TIMESTAMP)

_GET_ORDER = text(
    _SUMMARY_COLUMNS
    + """
    WHERE o.id = :id AND o.tenant_id = :tenant_id
"""
).columns(total_amount=MONEY, created_at=TIMESTAMP)

_GET_ORDER_ITEMS = text("""
    SELECT p.name AS product_name, oi.quantity, oi.unit_price, oi.total_price
    FROM order_items oi
    JOIN products p ON p.id = oi.product_id
    WHERE oi.order_id = :order_id
    ORDER BY p.name, oi.id
""").columns(unit_price=MONEY, total_price=MONEY)


# ── Write 側 ─────────────────────────────────────


async def create_order_header(
    session: AsyncSession,
    tenant_id: UUID,
    customer_id: UUID,
    total: Money,
    status: OrderStatus,
) -> UUID:
    """注文ヘッダを INSERT し、採番した注文 ID を返す。"""
    order_id = uuid4()
    await session.execute(
        _INSERT_ORDER,
        {
            "id": str(order_id),
            "tenant_id": str(tenant_id),
            "customer_id": str(customer_id),
            "total_amount": total.to_decimal(),
            "status": status.value,
            "created_at": datetime.now(timezone.utc),
        },
    )
    return order_id


async def create_order_items(
    session: AsyncSession,
    order_id: UUID,
    items: Sequence[PricedLine],
) -> None:
    """明細をまとめて INSERT する（executemany）。"""
    if not items:
        return
    await session.execute(
        _INSERT_ORDER_ITEM,
        [
            {
                "id": str(uuid4()),
                "order_id": str(order_id),
                "product_id": str(item.product_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price.to_decimal(),
                "total_price": item.line_total.to_decimal(),
            }
            for item in items
        ],
    )


# ── Read 側 ──────────────────────────────────────


def _to_summary(row) -> OrderSummary:
    return OrderSummary(
        id=UUID(str(row.id)),
        customer_name=row.customer_name,
        total_amount=Money.from_db(row.total_amount).to_decimal_string(),
        status=row.status,
        created_date=row.created_at.date().isoformat(),
    )


async def iter_orders(
    session: AsyncSession,
    tenant_id: UUID,
) -> AsyncIterator[OrderSummary]:
    """
    テナントの注文を新しい順にストリームで返す。

    呼び出すたびに新しいクエリを発行するので、何度でもやり直せる。
    """
    result = await session.stream(_LIST_ORDERS, {"tenant_id": str(tenant_id)})
    async for row in result:
        yield _to_summary(row)


async def list_orders(session: AsyncSession, tenant_id: UUID) -> list[OrderSummary]:
    return [summary async for summary in iter_orders(session, tenant_id)]


async def get_order_header(
    session: AsyncSession,
    tenant_id: UUID,
    order_id: UUID,
) -> OrderSummary | None:
    result = await session.execute(
        _GET_ORDER,
        {"id": str(order_id), "tenant_id": str(tenant_id)},
    )
    row = result.fetchone()
    if not row:
        return None
    return _to_summary(row)


async def get_order_items(
    session: AsyncSession,
    order_id: UUID,
) -> list[OrderItemView]:
    """
    注文明細を返す。

    明細が 1 件もなければ NotFoundError。注文は必ず 1 件以上の明細と
    一緒に作られるので、空は「注文が存在しない」とみなす。
    """
    result = await session.execute(_GET_ORDER_ITEMS, {"order_id": str(order_id)})
    items = [
        OrderItemView(
            product_name=row.product_name,
            quantity=row.quantity,
            unit_price=Money.from_db(row.unit_price).to_decimal_string(),
            total_price=Money.from_db(row.total_price).to_decimal_string(),
        )
        for row in result.fetchall()
    ]
    if not items:
        raise NotFoundError("order", order_id)
    return items


async def customer_exists(
    session: AsyncSession,
    tenant_id: UUID,
    customer_id: UUID,
) -> bool:
    result = await session.execute(
        text("SELECT 1 FROM customers WHERE id = :id AND tenant_id = :tenant_id"),
        {"id": str(customer_id), "tenant_id": str(tenant_id)},
    )
    return result.first() is not None
