from decimal import Decimal
from functools import reduce
from typing import Callable, Tuple
from .domain import Cart, CartItem, Discount
from .ftypes import Maybe

FREE_SHIPPING_THRESHOLD = Decimal("400000")
SHIPPING_SUPPORT_AMOUNT = Decimal("30000")


# ============ Выбор скидки ============


def qualifies_for(quantity: int) -> Callable[[Discount], bool]:
    """Фильтр: активная скидка с порогом не выше quantity"""
    return lambda d: d.is_active and d.min_quantity <= quantity


def discount_for_quantity(
    quantity: int, discounts: Tuple[Discount, ...]
) -> Maybe[Discount]:
    """
    Скидка для количества: среди подходящих берётся порог с наибольшим min_quantity.
    При равных порогах выигрывает больший discount_percent, затем порядок в каталоге.
    """
    candidates = tuple(filter(qualifies_for(quantity), discounts))
    if not candidates:
        return Maybe.nothing()

    # max() возвращает первый из равных, поэтому порядок каталога сохраняется
    best = max(candidates, key=lambda d: (d.min_quantity, d.discount_percent))
    return Maybe.some(best)


def applicable_discount(
    item: CartItem, discounts: Tuple[Discount, ...]
) -> Maybe[Discount]:
    return discount_for_quantity(item.quantity, discounts)


def apply_percent(price: Decimal, percent: Decimal) -> Decimal:
    """price - price * percent / 100 без промежуточного округления"""
    return price - price * (Decimal(percent) / Decimal(100))


def price_for_quantity(
    price: Decimal, quantity: int, discounts: Tuple[Discount, ...]
) -> Decimal:
    """
    Цена за единицу при покупке quantity штук.
    Пустой каталог или отсутствие подходящей скидки - цена без изменений.
    """
    if not discounts:
        return price

    return (
        discount_for_quantity(quantity, discounts)
        .map(lambda d: apply_percent(price, d.discount_percent))
        .get_or_else(price)
    )


def resolve_price(item: CartItem, discounts: Tuple[Discount, ...]) -> Decimal:
    """Эффективная цена строки корзины. Никогда не кэшируется в CartItem."""
    return price_for_quantity(item.current_price, item.quantity, discounts)


# ============ Суммы по строкам ============


def line_total(item: CartItem) -> Decimal:
    return item.current_price * item.quantity


def discounted_line_total(item: CartItem, discounts: Tuple[Discount, ...]) -> Decimal:
    return resolve_price(item, discounts) * item.quantity


def line_savings(item: CartItem, discounts: Tuple[Discount, ...]) -> Decimal:
    return line_total(item) - discounted_line_total(item, discounts)


def has_sale_price(item: CartItem) -> bool:
    """Товар уже продаётся ниже исходной цены"""
    return item.original_price > item.current_price


# ============ Суммы по корзине ============


def discounted_total(cart: Cart, discounts: Tuple[Discount, ...]) -> Decimal:
    """Сумма resolve_price(item) * quantity по всем строкам"""
    return reduce(
        lambda acc, item: acc + discounted_line_total(item, discounts),
        cart.items,
        Decimal("0"),
    )


def shipping_support(
    amount: Decimal,
    threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    support: Decimal = SHIPPING_SUPPORT_AMOUNT,
) -> Decimal:
    """Компенсация доставки для заказов от порога"""
    return Decimal(support) if amount >= Decimal(threshold) else Decimal("0")


def order_summary(
    cart: Cart,
    discounts: Tuple[Discount, ...],
    threshold: Decimal = FREE_SHIPPING_THRESHOLD,
    support: Decimal = SHIPPING_SUPPORT_AMOUNT,
) -> dict:
    """Итоги для страницы корзины и оформления заказа"""
    subtotal = cart.total_price
    discounted = discounted_total(cart, discounts)
    shipping = shipping_support(discounted, threshold, support)

    return {
        "subtotal": subtotal,
        "discounted_total": discounted,
        "discount_amount": subtotal - discounted,
        "shipping_support": shipping,
        "grand_total": discounted - shipping,
        "total_items": cart.total_items,
    }
