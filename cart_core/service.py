import logging
from decimal import Decimal
from typing import Optional, Tuple
from .config import Settings
from .domain import Cart, CartItem, Discount, Product
from .discounts import DiscountCatalogLoader
from .ftypes import Maybe
from .pricing import (
    applicable_discount,
    discounted_total,
    order_summary,
    resolve_price,
)
from .reducer import add_item, clear_cart, load_cart, remove_item, update_quantity
from .storage import CartPersistence, LocalStorage, MemoryStorage
from .store import CartStore

logger = logging.getLogger(__name__)


class CartService:
    """
    Фасад корзины - единственная точка входа для UI.
    Жизненный цикл: init() -> мутации через методы -> teardown()
    """

    def __init__(
        self,
        persistence: Optional[CartPersistence] = None,
        loader: Optional[DiscountCatalogLoader] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or Settings()
        self.persistence = persistence or CartPersistence(
            MemoryStorage(), self.settings.cart_storage_key
        )
        self.loader = loader
        self.store = CartStore()
        self.discounts: Tuple[Discount, ...] = ()
        self._unsubscribe = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CartService":
        """Сервис с файловым хранилищем и загрузчиком скидок из настроек"""
        persistence = CartPersistence(
            LocalStorage(settings.cart_storage_dir), settings.cart_storage_key
        )
        loader = DiscountCatalogLoader(settings.discounts_url, settings.http_timeout)
        return cls(persistence=persistence, loader=loader, settings=settings)

    # ============ Жизненный цикл ============

    def init(self) -> Cart:
        """Восстанавливает корзину из хранилища и включает автосохранение"""
        snapshot = self.persistence.load()
        if snapshot.is_some():
            self.store.dispatch(load_cart(snapshot.value))
            logger.info("Cart rehydrated with %d item(s)", len(snapshot.value.items))

        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.persistence)
        return self.cart

    def teardown(self) -> None:
        if self._unsubscribe is not None:
            self.persistence.save(self.cart)
            self._unsubscribe()
            self._unsubscribe = None

    def refresh_discounts(self) -> Tuple[Discount, ...]:
        if self.loader is not None:
            self.discounts = self.loader.load()
        return self.discounts

    async def refresh_discounts_async(self) -> Tuple[Discount, ...]:
        if self.loader is not None:
            self.discounts = await self.loader.load_async()
        return self.discounts

    # ============ Мутации ============

    @property
    def cart(self) -> Cart:
        return self.store.state

    def add_to_cart(self, product: Product, quantity: int = 1) -> Cart:
        """Недоступный товар или quantity <= 0 - молчаливый no-op"""
        if not product.available or quantity <= 0:
            logger.debug("Ignoring add of %s x %s", product.sku, quantity)
            return self.cart
        return self.store.dispatch(add_item(product, quantity))

    def remove_from_cart(self, product_sku: str) -> Cart:
        return self.store.dispatch(remove_item(product_sku))

    def update_quantity(self, product_sku: str, quantity: int) -> Cart:
        return self.store.dispatch(update_quantity(product_sku, quantity))

    def clear_cart(self) -> Cart:
        return self.store.dispatch(clear_cart())

    # ============ Запросы ============

    def get_cart_item_count(self) -> int:
        return self.cart.total_items

    def get_cart_total(self) -> Decimal:
        """Сумма без оптовых скидок"""
        return self.cart.total_price

    def get_discounted_total(self) -> Decimal:
        return discounted_total(self.cart, self.discounts)

    def get_item_discounted_price(self, item: CartItem) -> Decimal:
        return resolve_price(item, self.discounts)

    def get_applicable_discount(self, item: CartItem) -> Maybe[Discount]:
        return applicable_discount(item, self.discounts)

    def is_in_cart(self, product_sku: str) -> bool:
        return any(item.product_sku == product_sku for item in self.cart.items)

    def get_cart_item(self, product_sku: str) -> Maybe[CartItem]:
        return Maybe.of(
            next((i for i in self.cart.items if i.product_sku == product_sku), None)
        )

    def get_order_summary(self) -> dict:
        return order_summary(
            self.cart,
            self.discounts,
            self.settings.free_shipping_threshold,
            self.settings.shipping_support_amount,
        )
