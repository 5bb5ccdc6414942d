from decimal import Decimal, ROUND_HALF_UP


def format_vnd(amount) -> str:
    """Цена в донгах как на витрине (vi-VN): 100000 -> '100.000 ₫'"""
    rounded = Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    grouped = f"{abs(int(rounded)):,}".replace(",", ".")
    sign = "-" if rounded < 0 else ""
    return f"{sign}{grouped} ₫"
