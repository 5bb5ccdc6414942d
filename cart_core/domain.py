from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Tuple, Dict


@dataclass(frozen=True)
class ProductImage:
    image_url: str
    is_primary: bool = False
    position: int = 0


@dataclass(frozen=True)
class Product:
    """Снимок товара из каталога (только для чтения)"""

    sku: str
    product_name: str
    current_price: Decimal
    original_price: Decimal
    available: bool
    quantity: int  # остаток на складе
    product_type: str = ""
    weight: Optional[str] = None
    images: Tuple[ProductImage, ...] = ()


@dataclass(frozen=True)
class CartItem:
    """
    Строка корзины: один SKU.
    Отображаемые поля копируются в момент добавления и не синхронизируются с каталогом.
    """

    product_sku: str
    product_name: str
    current_price: Decimal
    original_price: Decimal
    quantity: int
    max_quantity: int
    available: bool
    product_type: str = ""
    weight: Optional[str] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Cart:
    items: Tuple[CartItem, ...]
    total_items: int
    total_price: Decimal
    updated_at: str  # ISO 8601


@dataclass(frozen=True)
class Discount:
    id: str
    min_quantity: int
    discount_percent: Decimal  # 0..100
    is_active: bool = True


@dataclass(frozen=True)
class CartAction:
    type: str
    ts: str
    payload: Dict = field(default_factory=dict)


def empty_cart(ts: str) -> Cart:
    return Cart(items=(), total_items=0, total_price=Decimal("0"), updated_at=ts)
