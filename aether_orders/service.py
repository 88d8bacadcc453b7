"""
注文サービス (Order Service)

注文作成トランザクションのオーケストレーター。

  create_order のフロー:
  ┌──────────────────────────────────────────────────────┐
  │  1. 入力検証と金額計算（トランザクション開始前）          │
  │  2. トランザクション開始                                │
  │  3. 顧客の存在確認                                     │
  │  4. 明細ごとに在庫を条件付き減算                         │
  │     └─ 失敗 → ロールバックして StockUnavailableError    │
  │  5. 注文ヘッダと明細を INSERT                           │
  │  6. コミット → OrderCreated を発行                      │
  └──────────────────────────────────────────────────────┘

コミット以外の経路（例外・キャンセル）では必ずロールバックされ、
中途半端な注文や在庫減算は残らない。
"""

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from uuid import UUID

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import events, inventory, repository
from .errors import (
    InvalidAmountError,
    LedgerError,
    NotFoundError,
    OrderValidationError,
    PersistenceError,
    StockUnavailableError,
)
from .models import LineItem, OrderDetails, OrderStatus, OrderSummary, PricedLine
from .money import MAX_AMOUNT, Money, total

logger = logging.getLogger(__name__)


def price_lines(items: Sequence[LineItem]) -> list[PricedLine]:
    """明細を検証し、明細金額を計算する。副作用なし。"""
    if not items:
        raise OrderValidationError("order must contain at least one item")

    priced = []
    for item in items:
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int):
            raise OrderValidationError(f"quantity must be an integer: {item.quantity!r}")
        if item.quantity <= 0:
            raise OrderValidationError(f"quantity must be positive: {item.quantity}")
        try:
            unit_price = Money.parse(item.unit_price)
            line_total = unit_price.multiply_by_quantity(item.quantity)
        except InvalidAmountError as exc:
            raise OrderValidationError(str(exc)) from exc
        _check_storable(line_total, "line total")
        priced.append(
            PricedLine(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=unit_price,
                line_total=line_total,
            )
        )
    return priced


def order_total_of(lines: Sequence[PricedLine]) -> Money:
    try:
        order_total = total(line.line_total for line in lines)
    except InvalidAmountError as exc:
        raise OrderValidationError(str(exc)) from exc
    _check_storable(order_total, "order total")
    return order_total


def _check_storable(amount: Money, label: str) -> None:
    # NUMERIC(12, 2) に収まらない金額は DB に届く前に弾く
    if amount > MAX_AMOUNT:
        raise OrderValidationError(f"{label} exceeds {MAX_AMOUNT}: {amount}")


class OrderService:
    """注文の作成と参照"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        redis: aioredis.Redis | None = None,
        publish_timeout: float = 2.0,
    ):
        self.session_factory = session_factory
        self.redis = redis
        self.publish_timeout = publish_timeout

    async def create_order(
        self,
        tenant_id: UUID,
        customer_id: UUID,
        items: Sequence[LineItem],
        timeout: float | None = None,
    ) -> UUID:
        """
        注文を作成して注文 ID を返す。

        timeout はトランザクション（コミットまで）だけに掛かる。
        期限切れならロールバックされて asyncio.TimeoutError になるので、
        呼び出し側は安全にリトライできる。コミット後のイベント発行は
        この期限の外で行い、遅延しても注文の成否には影響しない。
        """
        lines = price_lines(items)
        order_total = order_total_of(lines)

        order_id = await asyncio.wait_for(
            self._commit_order(tenant_id, customer_id, lines, order_total),
            timeout=timeout,
        )

        logger.info(
            "Order created: id=%s tenant=%s items=%d total=%s",
            order_id, tenant_id, len(lines), order_total,
        )
        await self._publish_order_created(
            order_id, tenant_id, customer_id, lines, order_total
        )
        return order_id

    async def _commit_order(
        self,
        tenant_id: UUID,
        customer_id: UUID,
        lines: list[PricedLine],
        order_total: Money,
    ) -> UUID:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    return await self._write_order(
                        session, tenant_id, customer_id, lines, order_total
                    )
        except SQLAlchemyError as exc:
            logger.exception("Order persistence failed: tenant=%s", tenant_id)
            raise PersistenceError("failed to persist order") from exc

    async def _write_order(
        self,
        session: AsyncSession,
        tenant_id: UUID,
        customer_id: UUID,
        lines: list[PricedLine],
        order_total: Money,
    ) -> UUID:
        """トランザクション内の書き込み。例外はそのままロールバックに繋がる。"""
        if not await repository.customer_exists(session, tenant_id, customer_id):
            raise NotFoundError("customer", customer_id)

        # 行ロックの取得順を商品 ID 順に揃える
        for line in sorted(lines, key=lambda item: str(item.product_id)):
            try:
                await inventory.decrement_if_available(
                    session, line.product_id, line.quantity, tenant_id
                )
            except LedgerError as exc:
                logger.warning(
                    "Stock unavailable: tenant=%s product=%s reason=%s",
                    tenant_id, exc.product_id, exc,
                )
                raise StockUnavailableError(exc.product_id, str(exc)) from exc

        order_id = await repository.create_order_header(
            session, tenant_id, customer_id, order_total, OrderStatus.COMPLETED
        )
        await repository.create_order_items(session, order_id, lines)
        return order_id

    async def _publish_order_created(
        self,
        order_id: UUID,
        tenant_id: UUID,
        customer_id: UUID,
        lines: list[PricedLine],
        order_total: Money,
    ) -> None:
        """コミット済みの注文を通知する。失敗しても注文は取り消さない。"""
        if self.redis is None:
            return
        event = events.OrderCreated(
            order_id=order_id,
            tenant_id=tenant_id,
            customer_id=customer_id,
            total_amount=order_total.to_decimal_string(),
            status=OrderStatus.COMPLETED.value,
            items=[
                events.OrderCreatedItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price.to_decimal_string(),
                    total_price=line.line_total.to_decimal_string(),
                )
                for line in lines
            ],
            timestamp=datetime.now(timezone.utc),
        )
        try:
            await asyncio.wait_for(
                events.publish(self.redis, event), timeout=self.publish_timeout
            )
        except RedisError:
            logger.exception("Failed to publish OrderCreated: id=%s", order_id)
        except asyncio.TimeoutError:
            logger.error(
                "Timed out publishing OrderCreated: id=%s timeout=%.1fs",
                order_id, self.publish_timeout,
            )

    # ── Read 側 ──────────────────────────────────

    async def list_orders(self, tenant_id: UUID) -> list[OrderSummary]:
        try:
            async with self.session_factory() as session:
                return await repository.list_orders(session, tenant_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to list orders: tenant=%s", tenant_id)
            raise PersistenceError("failed to list orders") from exc

    async def get_order_details(self, tenant_id: UUID, order_id: UUID) -> OrderDetails:
        """
        注文ヘッダと明細を返す。

        ヘッダを明示的に確認するので「注文が存在しない」と
        「明細が空」を取り違えない。別テナントの注文も NotFoundError。
        """
        try:
            async with self.session_factory() as session:
                header = await repository.get_order_header(session, tenant_id, order_id)
                if header is None:
                    raise NotFoundError("order", order_id)
                items = await repository.get_order_items(session, order_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load order: id=%s", order_id)
            raise PersistenceError("failed to load order") from exc
        return OrderDetails(**header.model_dump(), items=items)
