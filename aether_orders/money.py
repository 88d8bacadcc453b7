"""
金額 (Money) 値オブジェクト

単価・明細金額・注文合計を表す固定小数点の値。
内部は Decimal で保持し、float は保存にも比較にも使わない。

スケールは常に小数 2 桁。乗算と加算は 2 桁の範囲で厳密に計算され、
2 桁未満の切り捨ては起こらない。
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from .errors import InvalidAmountError

CENT = Decimal("0.01")

# 符号なし、小数部は最大 2 桁
_AMOUNT_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")


@dataclass(frozen=True, order=True)
class Money:
    amount: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise TypeError(f"Money requires Decimal, got {type(self.amount).__name__}")
        if not self.amount.is_finite():
            raise InvalidAmountError(f"amount must be finite: {self.amount}")
        if self.amount.as_tuple().exponent < -2:
            raise InvalidAmountError(f"more than 2 fractional digits: {self.amount}")
        try:
            quantized = self.amount.quantize(CENT)
        except InvalidOperation as exc:
            # 28 桁の精度に収まらない
            raise InvalidAmountError(f"amount out of range: {self.amount}") from exc
        object.__setattr__(self, "amount", quantized)

    # ── 生成 ─────────────────────────────────────

    @classmethod
    def zero(cls) -> "Money":
        return cls(Decimal("0.00"))

    @classmethod
    def from_decimal_string(cls, value: str) -> "Money":
        """
        "19.99" のような 10 進文字列から生成する。

        負数・指数表記・3 桁以上の小数は InvalidAmountError。
        """
        if not isinstance(value, str) or not _AMOUNT_PATTERN.match(value.strip()):
            raise InvalidAmountError(f"invalid amount: {value!r}")
        return cls(Decimal(value.strip()))

    @classmethod
    def parse(cls, value: "str | Decimal | int") -> "Money":
        """API から届いた単価 (文字列 / Decimal / 整数) を受け付ける。"""
        if isinstance(value, bool):
            raise InvalidAmountError(f"invalid amount: {value!r}")
        if isinstance(value, str):
            return cls.from_decimal_string(value)
        if isinstance(value, int):
            value = Decimal(value)
        if not isinstance(value, Decimal):
            raise InvalidAmountError(f"unsupported amount type: {type(value).__name__}")
        if value.is_signed() and value != 0:
            raise InvalidAmountError(f"amount must not be negative: {value}")
        if not value.is_finite():
            raise InvalidAmountError(f"amount must be finite: {value}")
        try:
            quantized = abs(value).quantize(CENT)
        except InvalidOperation as exc:
            raise InvalidAmountError(f"amount out of range: {value}") from exc
        # 19.990 のような末尾ゼロは許容する
        if quantized != abs(value):
            raise InvalidAmountError(f"more than 2 fractional digits: {value}")
        return cls(quantized)

    @classmethod
    def from_db(cls, value) -> "Money":
        """NUMERIC(12, 2) 列の値を読み込む。"""
        try:
            return cls(Decimal(str(value)).quantize(CENT))
        except InvalidOperation as exc:
            raise InvalidAmountError(f"invalid stored amount: {value!r}") from exc

    # ── 演算 ─────────────────────────────────────

    def multiply_by_quantity(self, quantity: int) -> "Money":
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise TypeError("quantity must be an int")
        return Money(self.amount * quantity)

    def add(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            raise TypeError("can only add Money to Money")
        return Money(self.amount + other.amount)

    __add__ = add

    # ── 変換 ─────────────────────────────────────

    def to_decimal(self) -> Decimal:
        return self.amount

    def to_decimal_string(self) -> str:
        return f"{self.amount:.2f}"

    def __str__(self) -> str:
        return self.to_decimal_string()


def total(amounts) -> Money:
    """Money の列を合計する。空なら 0.00。"""
    result = Money.zero()
    for amount in amounts:
        result = result.add(amount)
    return result


# NUMERIC(12, 2) に格納できる最大値
MAX_AMOUNT = Money(Decimal("9999999999.99"))
