"""
例外定義

注文作成のビジネス結果とストレージ障害を型で区別する。
HTTP 層はこの型を見てステータスコードを決める。
"""

from uuid import UUID


class OrderError(Exception):
    """注文処理の基底例外"""


class OrderValidationError(OrderError):
    """トランザクション開始前に弾かれる入力エラー"""


class StockUnavailableError(OrderError):
    """在庫を引き当てられなかった（注文全体をロールバック済み）"""

    def __init__(self, product_id: UUID, reason: str) -> None:
        super().__init__(f"stock unavailable for product {product_id}: {reason}")
        self.product_id = product_id
        self.reason = reason


class NotFoundError(OrderError):
    def __init__(self, resource: str, resource_id: UUID) -> None:
        super().__init__(f"{resource} not found: {resource_id}")
        self.resource = resource
        self.resource_id = resource_id


class PersistenceError(OrderError):
    """ストレージ障害。部分的な状態は残らないので全体のリトライは安全。"""


# ── 在庫台帳 (Inventory Ledger) の結果 ─────────────


class LedgerError(Exception):
    def __init__(self, product_id: UUID, message: str) -> None:
        super().__init__(message)
        self.product_id = product_id


class InsufficientStockError(LedgerError):
    def __init__(self, product_id: UUID, requested: int, available: int) -> None:
        super().__init__(
            product_id,
            f"Insufficient stock: requested={requested}, available={available}",
        )
        self.requested = requested
        self.available = available


class ProductNotFoundError(LedgerError):
    def __init__(self, product_id: UUID) -> None:
        super().__init__(product_id, "Product not found")


# ── 金額 ─────────────────────────────────────────


class InvalidAmountError(ValueError):
    """金額として解釈できない入力"""
