"""
イベント定義と発行

コミット済みの事実だけをイベントとして Redis Pub/Sub に流す。
ダッシュボード集計など他サービスは order_events チャネルを購読する。
"""

import json
from datetime import datetime
from uuid import UUID

import redis.asyncio as aioredis
from pydantic import BaseModel

ORDER_EVENTS_CHANNEL = "order_events"


class OrderCreatedItem(BaseModel):
    product_id: UUID
    quantity: int
    unit_price: str
    total_price: str


class OrderCreated(BaseModel):
    """注文が作成された（在庫減算・明細作成まで完了）"""
    order_id: UUID
    tenant_id: UUID
    customer_id: UUID
    total_amount: str
    status: str
    items: list[OrderCreatedItem]
    timestamp: datetime


async def publish(redis: aioredis.Redis, event: BaseModel) -> None:
    await redis.publish(
        ORDER_EVENTS_CHANNEL,
        json.dumps(
            {
                "event_type": type(event).__name__,
                "data": event.model_dump(mode="json"),
            },
            default=str,
        ),
    )
