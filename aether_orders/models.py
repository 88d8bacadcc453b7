"""
注文ドメインの型

OrderSummary / OrderItemView / OrderDetails は Read 側の出力で、
そのまま API のレスポンスになる。金額は小数 2 桁の文字列。
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import BaseModel

from .money import Money


class OrderStatus(str, Enum):
    """
    注文ステータス

    現在作成されるのは COMPLETED のみ。
    将来 PENDING / CANCELLED などを追加できるよう列挙型にしている。
    """

    COMPLETED = "completed"


@dataclass(frozen=True)
class LineItem:
    """注文リクエストの 1 明細（検証済みの HTTP 入力から作る）"""

    product_id: UUID
    quantity: int
    unit_price: str | Decimal


@dataclass(frozen=True)
class PricedLine:
    """金額計算済みの明細。unit_price は注文時点のスナップショット。"""

    product_id: UUID
    quantity: int
    unit_price: Money
    line_total: Money


# ── Read 側 ──────────────────────────────────────


class OrderSummary(BaseModel):
    id: UUID
    customer_name: str
    total_amount: str
    status: str
    created_date: str


class OrderItemView(BaseModel):
    product_name: str
    quantity: int
    unit_price: str
    total_price: str


class OrderDetails(OrderSummary):
    items: list[OrderItemView]
