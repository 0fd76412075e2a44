"""表示用の丸め処理。

組み込みの round() は偶数丸めになるため、集計値はすべてここを通して
四捨五入（0 から遠い方向への丸め）する。
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_away(value: float, digits: int = 0) -> float:
    """value を小数点以下 digits 桁で四捨五入する。

    >>> round_half_away(2.5)
    3.0
    >>> round_half_away(-2.5)
    -3.0
    >>> round_half_away(30.25, 1)
    30.3
    """
    exponent = Decimal(1).scaleb(-digits)
    # repr 経由で 0.1 などの二進誤差を持ち込まない
    return float(Decimal(repr(value)).quantize(exponent, rounding=ROUND_HALF_UP))


def round1(value: float) -> float:
    """小数点以下 1 桁に丸める。"""
    return round_half_away(value, 1)


def round_int(value: float) -> int:
    """整数に丸める。"""
    return int(round_half_away(value, 0))
