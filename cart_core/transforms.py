import json
from decimal import Decimal, InvalidOperation
from typing import Tuple
from .ftypes import Either
from .domain import Cart, CartItem, Discount, Product, ProductImage


# ============ Деньги ============


def to_decimal(value) -> Decimal:
    """Число или строка из JSON -> конечный Decimal (bool, None, NaN, Infinity не принимаются)"""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a decimal amount: {value!r}")
    if isinstance(value, float):
        result = Decimal(repr(value))
    else:
        result = Decimal(str(value))
    if not result.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return result


def to_int(value) -> int:
    """Целое из JSON: bool, дробные и бесконечные значения не принимаются"""
    if isinstance(value, bool):
        raise ValueError(f"Not an integer: {value!r}")
    number = to_decimal(value)
    if number != number.to_integral_value():
        raise ValueError(f"Not an integer: {value!r}")
    return int(number)


def to_bool(value) -> bool:
    """Только настоящие true/false; строка "false" - ошибка, а не True"""
    if not isinstance(value, bool):
        raise ValueError(f"Not a boolean: {value!r}")
    return value


def reject_constant(name: str):
    # parse_constant для json.loads: NaN / Infinity / -Infinity
    raise ValueError(f"Unsupported JSON constant: {name}")


def decimal_to_json(value: Decimal):
    """
    Decimal -> JSON-число без потерь:
    целое -> int, точно представимое -> float, иначе строка
    """
    if not value.is_finite():
        raise ValueError(f"Cannot store non-finite amount: {value}")
    if value == value.to_integral_value():
        return int(value)
    as_float = float(value)
    if Decimal(repr(as_float)) == value:
        return as_float
    return str(value)


# ============ Cart <-> dict ============


def item_to_dict(item: CartItem) -> dict:
    data = {
        "productSKU": item.product_sku,
        "productName": item.product_name,
        "currentPrice": decimal_to_json(item.current_price),
        "originalPrice": decimal_to_json(item.original_price),
        "quantity": item.quantity,
        "maxQuantity": item.max_quantity,
        "available": item.available,
        "productType": item.product_type,
        "weight": item.weight,
        "imageUrl": item.image_url,
    }
    # необязательные поля не пишем, как JSON.stringify с undefined
    return {k: v for k, v in data.items() if v is not None}


def cart_to_dict(cart: Cart) -> dict:
    return {
        "items": [item_to_dict(item) for item in cart.items],
        "totalItems": cart.total_items,
        "totalPrice": decimal_to_json(cart.total_price),
        "updatedAt": cart.updated_at,
    }


def item_from_dict(raw: dict) -> CartItem:
    return CartItem(
        product_sku=str(raw["productSKU"]),
        product_name=str(raw.get("productName", "")),
        current_price=to_decimal(raw["currentPrice"]),
        original_price=to_decimal(raw.get("originalPrice", raw["currentPrice"])),
        quantity=to_int(raw["quantity"]),
        max_quantity=to_int(raw.get("maxQuantity", raw["quantity"])),
        available=to_bool(raw.get("available", True)),
        product_type=str(raw.get("productType") or ""),
        weight=raw.get("weight"),
        image_url=raw.get("imageUrl"),
    )


def cart_from_dict(raw) -> Either[dict, Cart]:
    """
    Восстанавливает Cart из словаря.
    Агрегаты берутся как есть: согласованность снимка не проверяется.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("items"), list):
        return Either.left({"error": "Cart snapshot must be an object with an items list"})

    try:
        items = tuple(item_from_dict(i) for i in raw["items"])
        cart = Cart(
            items=items,
            total_items=to_int(raw.get("totalItems", 0)),
            total_price=to_decimal(raw.get("totalPrice", 0)),
            updated_at=str(raw.get("updatedAt", "")),
        )
    except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation) as e:
        return Either.left({"error": f"Malformed cart snapshot: {e!r}"})

    return Either.right(cart)


def serialize_cart(cart: Cart) -> str:
    return json.dumps(cart_to_dict(cart), ensure_ascii=False)


def deserialize_cart(text: str) -> Either[dict, Cart]:
    """JSON-строка -> Either[error, Cart]; исключения наружу не выходят"""
    return parse_json(text).bind(cart_from_dict)


def parse_json(text: str) -> Either[dict, object]:
    """json.loads с Decimal для дробных и без NaN/Infinity"""
    try:
        return Either.right(
            json.loads(text, parse_float=Decimal, parse_constant=reject_constant)
        )
    except (TypeError, ValueError) as e:
        return Either.left({"error": f"Invalid cart JSON: {e}"})


# ============ Ответы бэкенда ============


def unwrap_envelope(payload) -> Either[dict, list]:
    """
    Ответ API: {"success": true, "data": [...]} или просто список
    """
    if isinstance(payload, list):
        return Either.right(payload)

    if isinstance(payload, dict):
        if payload.get("success") is False:
            return Either.left({"error": payload.get("message") or "Request was not successful"})
        data = payload.get("data")
        if isinstance(data, list):
            return Either.right(data)

    return Either.left({"error": "Unexpected response shape"})


def discount_from_dict(raw) -> Either[dict, Discount]:
    try:
        discount = Discount(
            id=str(raw["id"]),
            min_quantity=to_int(raw["minQuantity"]),
            discount_percent=to_decimal(raw["discountPercent"]),
            is_active=to_bool(raw.get("isActive", True)),
        )
    except (KeyError, TypeError, ValueError, OverflowError, InvalidOperation) as e:
        return Either.left({"error": f"Malformed discount {raw!r}: {e!r}"})

    if not Decimal(0) <= discount.discount_percent <= Decimal(100):
        return Either.left(
            {"error": f"Discount {discount.id} percent out of range: {discount.discount_percent}"}
        )
    return Either.right(discount)


def product_from_payload(raw: dict) -> Product:
    """Объект товара из API каталога -> Product"""
    images = sorted(
        raw.get("images") or [],
        key=lambda i: (not i.get("isPrimary", False), i.get("position", 0)),
    )
    return Product(
        sku=str(raw["productSku"]),
        product_name=str(raw["productName"]),
        current_price=to_decimal(raw["currentPrice"]),
        original_price=to_decimal(raw.get("originalPrice", raw["currentPrice"])),
        available=to_bool(raw.get("available", True)),
        quantity=to_int(raw.get("quantity", 0)),
        product_type=str(raw.get("productType") or ""),
        weight=raw.get("weight"),
        images=tuple(
            ProductImage(
                image_url=i["imageUrl"],
                is_primary=to_bool(i.get("isPrimary", False)),
                position=to_int(i.get("position", 0)),
            )
            for i in images
        ),
    )


def load_catalog(path: str) -> Tuple[Tuple[Product, ...], Tuple[Discount, ...]]:
    """Загружает демо-каталог (товары и скидки) из JSON-файла"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f, parse_float=Decimal)

    products = tuple(map(product_from_payload, data.get("products", [])))
    discounts = tuple(
        d.value for d in map(discount_from_dict, data.get("discounts", [])) if d.is_right
    )
    return products, discounts
