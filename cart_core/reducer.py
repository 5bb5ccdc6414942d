from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from functools import reduce
from typing import Callable, Tuple
from .domain import Cart, CartAction, CartItem, Product, empty_cart

ADD_ITEM = "ADD_ITEM"
REMOVE_ITEM = "REMOVE_ITEM"
UPDATE_QUANTITY = "UPDATE_QUANTITY"
CLEAR_CART = "CLEAR_CART"
LOAD_CART = "LOAD_CART"

Handler = Callable[[CartAction, Cart], Cart]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class CartReducer:
    """
    Иммутабельный реестр обработчиков действий корзины.
    Обработчики - чистые функции: (CartAction, Cart) -> Cart
    """

    handlers: Tuple[Tuple[str, Handler], ...] = ()

    def register(self, action_type: str, handler: Handler) -> "CartReducer":
        """Возвращает новый редьюсер с добавленным обработчиком"""
        return CartReducer(handlers=self.handlers + ((action_type, handler),))

    def reduce(self, state: Cart, action: CartAction) -> Cart:
        """
        Применяет к состоянию все обработчики данного типа действия (fold).
        Неизвестное действие возвращает состояние без изменений.
        """
        matching = tuple(h for name, h in self.handlers if name == action.type)
        return reduce(lambda current, handler: handler(action, current), matching, state)


# ============ Конструкторы действий ============


def create_action(action_type: str, payload: dict = None, ts: str = None) -> CartAction:
    """Создаёт действие с меткой времени (она станет updated_at корзины)"""
    return CartAction(type=action_type, ts=ts or now_iso(), payload=dict(payload or {}))


def add_item(product: Product, quantity: int, ts: str = None) -> CartAction:
    return create_action(ADD_ITEM, {"product": product, "quantity": quantity}, ts)


def remove_item(product_sku: str, ts: str = None) -> CartAction:
    return create_action(REMOVE_ITEM, {"product_sku": product_sku}, ts)


def update_quantity(product_sku: str, quantity: int, ts: str = None) -> CartAction:
    return create_action(
        UPDATE_QUANTITY, {"product_sku": product_sku, "quantity": quantity}, ts
    )


def clear_cart(ts: str = None) -> CartAction:
    return create_action(CLEAR_CART, {}, ts)


def load_cart(snapshot: Cart, ts: str = None) -> CartAction:
    return create_action(LOAD_CART, {"cart": snapshot}, ts)


# ============ Пересчёт агрегатов ============


def with_items(items: Tuple[CartItem, ...], ts: str) -> Cart:
    """
    Собирает корзину из строк, заново считая total_items и total_price.
    Агрегаты всегда пересчитываются полностью, без инкрементальных поправок.
    """
    total_items = reduce(lambda acc, item: acc + item.quantity, items, 0)
    total_price = reduce(
        lambda acc, item: acc + item.current_price * item.quantity, items, Decimal("0")
    )
    return Cart(
        items=tuple(items),
        total_items=total_items,
        total_price=total_price,
        updated_at=ts,
    )


def item_from_product(product: Product, quantity: int) -> CartItem:
    """Снимок товара в строку корзины (количество ограничено остатком)"""
    return CartItem(
        product_sku=product.sku,
        product_name=product.product_name,
        current_price=product.current_price,
        original_price=product.original_price,
        quantity=min(quantity, product.quantity),
        max_quantity=product.quantity,
        available=product.available,
        product_type=product.product_type,
        weight=product.weight or None,
        image_url=product.images[0].image_url if product.images else None,
    )


# ============ Обработчики ============


def handle_add_item(action: CartAction, state: Cart) -> Cart:
    """
    ADD_ITEM: тот же SKU сливается с существующей строкой,
    лишнее сверх max_quantity молча отсекается
    """
    product = action.payload["product"]
    quantity = action.payload["quantity"]

    exists = any(item.product_sku == product.sku for item in state.items)

    if exists:
        items = tuple(
            replace(item, quantity=min(item.quantity + quantity, item.max_quantity))
            if item.product_sku == product.sku
            else item
            for item in state.items
        )
    else:
        new_item = item_from_product(product, quantity)
        # товар без остатка не попадает в корзину (quantity >= 1)
        items = state.items + ((new_item,) if new_item.quantity > 0 else ())

    return with_items(items, action.ts)


def handle_remove_item(action: CartAction, state: Cart) -> Cart:
    """REMOVE_ITEM: отсутствующий SKU - не ошибка"""
    sku = action.payload["product_sku"]
    items = tuple(filter(lambda item: item.product_sku != sku, state.items))
    return with_items(items, action.ts)


def handle_update_quantity(action: CartAction, state: Cart) -> Cart:
    """
    UPDATE_QUANTITY: quantity <= 0 удаляет строку целиком,
    иначе количество ограничивается max_quantity
    """
    sku = action.payload["product_sku"]
    quantity = action.payload["quantity"]

    if quantity <= 0:
        return handle_remove_item(action, state)

    items = tuple(
        replace(item, quantity=min(quantity, item.max_quantity))
        if item.product_sku == sku
        else item
        for item in state.items
    )
    return with_items(items, action.ts)


def handle_clear_cart(action: CartAction, state: Cart) -> Cart:
    return empty_cart(action.ts)


def handle_load_cart(action: CartAction, state: Cart) -> Cart:
    """LOAD_CART: снимок заменяет состояние целиком, без проверки согласованности"""
    return action.payload["cart"]


# ============ Сборка ============


def create_cart_reducer() -> CartReducer:
    """Редьюсер корзины со всеми пятью действиями"""
    reducer = CartReducer()
    reducer = reducer.register(ADD_ITEM, handle_add_item)
    reducer = reducer.register(REMOVE_ITEM, handle_remove_item)
    reducer = reducer.register(UPDATE_QUANTITY, handle_update_quantity)
    reducer = reducer.register(CLEAR_CART, handle_clear_cart)
    reducer = reducer.register(LOAD_CART, handle_load_cart)
    return reducer


_cart_reducer = create_cart_reducer()


def reduce_cart(state: Cart, action: CartAction) -> Cart:
    """Чистая функция перехода: (Cart, CartAction) -> Cart"""
    return _cart_reducer.reduce(state, action)


def apply_actions(state: Cart, actions: Tuple[CartAction, ...]) -> Cart:
    """Применяет последовательность действий к состоянию"""
    return reduce(reduce_cart, actions, state)
