import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import logging
from decimal import Decimal
import pytest
from cart_core.config import Settings
from cart_core.domain import Discount, Product
from cart_core.reducer import update_quantity
from cart_core.service import CartService
from cart_core.storage import CartPersistence, LocalStorage, MemoryStorage, StorageError
from cart_core.store import CartStore
from cart_core.transforms import deserialize_cart, serialize_cart

KEY = "ha-food-cart"


def make_product(sku, price="100000", stock=5, available=True):
    return Product(
        sku=sku,
        product_name=f"Product {sku}",
        current_price=Decimal(price),
        original_price=Decimal(price),
        available=available,
        quantity=stock,
    )


class StaticLoader:
    def __init__(self, discounts):
        self.discounts = discounts
        self.calls = 0

    def load(self):
        self.calls += 1
        return self.discounts

    async def load_async(self):
        return self.load()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def service(storage):
    svc = CartService(persistence=CartPersistence(storage, KEY))
    svc.init()
    return svc


def stored_cart(storage):
    return deserialize_cart(storage.get_item(KEY)).value


# ============ Мутации ============


def test_add_and_query(service):
    a1 = make_product("A1")
    service.add_to_cart(a1, 2)

    assert service.get_cart_item_count() == 2
    assert service.get_cart_total() == Decimal("200000")
    assert service.is_in_cart("A1")
    assert not service.is_in_cart("B2")
    assert service.get_cart_item("A1").value.quantity == 2
    assert service.get_cart_item("B2").is_none()


def test_add_defaults_to_one(service):
    service.add_to_cart(make_product("A1"))
    assert service.get_cart_item_count() == 1


@pytest.mark.parametrize(
    "product, quantity",
    [
        (make_product("OFF", available=False), 1),
        (make_product("A1"), 0),
        (make_product("A1"), -2),
    ],
)
def test_invalid_add_is_silent_noop(service, storage, product, quantity):
    before = service.cart
    notified = []
    service.store.subscribe(notified.append)

    result = service.add_to_cart(product, quantity)

    assert result is before
    assert service.cart is before
    assert notified == []
    assert storage.get_item(KEY) is None


def test_every_mutation_is_persisted(service, storage):
    service.add_to_cart(make_product("A1"), 2)
    assert stored_cart(storage) == service.cart

    service.add_to_cart(make_product("B2", "50000", stock=9), 3)
    assert stored_cart(storage) == service.cart

    service.update_quantity("A1", 4)
    assert stored_cart(storage).items[0].quantity == 4

    service.remove_from_cart("B2")
    assert [i.product_sku for i in stored_cart(storage).items] == ["A1"]


def test_clear_cart_updates_storage(service, storage):
    """Сценарий: clearCart на корзине из трёх товаров"""
    for sku in ("A", "B", "C"):
        service.add_to_cart(make_product(sku), 1)

    service.clear_cart()

    assert service.cart.items == ()
    assert service.get_cart_item_count() == 0
    assert service.get_cart_total() == 0
    assert stored_cart(storage).items == ()


def test_update_to_zero_removes(service):
    service.add_to_cart(make_product("A1"), 5)
    service.update_quantity("A1", 0)
    assert service.cart.items == ()
    assert service.get_cart_total() == 0


def test_persist_failure_keeps_memory_cart(caplog):
    class BrokenStorage(MemoryStorage):
        def set_item(self, key, value):
            raise StorageError("disabled")

    svc = CartService(persistence=CartPersistence(BrokenStorage(), KEY))
    svc.init()

    with caplog.at_level(logging.ERROR):
        svc.add_to_cart(make_product("A1"), 1)

    assert svc.get_cart_item_count() == 1
    assert "Error saving cart" in caplog.text


# ============ Скидки ============


def test_discount_queries(service):
    service.discounts = (Discount(id="d", min_quantity=5, discount_percent=Decimal("10")),)
    service.add_to_cart(make_product("A1", stock=5), 2)
    service.add_to_cart(make_product("A1", stock=5), 10)

    item = service.get_cart_item("A1").value
    assert item.quantity == 5
    assert service.get_cart_total() == Decimal("500000")
    assert service.get_item_discounted_price(item) == Decimal("90000")
    assert service.get_applicable_discount(item).value.id == "d"
    assert service.get_discounted_total() == Decimal("450000")


def test_pricing_before_discounts_loaded(service):
    service.add_to_cart(make_product("A1"), 5)
    assert service.get_discounted_total() == service.get_cart_total()


def test_refresh_discounts():
    loader = StaticLoader((Discount(id="d", min_quantity=1, discount_percent=Decimal("50")),))
    svc = CartService(loader=loader)
    svc.init()
    svc.add_to_cart(make_product("A1"), 1)

    assert svc.get_discounted_total() == Decimal("100000")
    svc.refresh_discounts()
    assert svc.get_discounted_total() == Decimal("50000")
    assert loader.calls == 1


@pytest.mark.asyncio
async def test_refresh_discounts_async():
    loader = StaticLoader((Discount(id="d", min_quantity=1, discount_percent=Decimal("10")),))
    svc = CartService(loader=loader)

    discounts = await svc.refresh_discounts_async()

    assert discounts == loader.discounts
    assert svc.discounts == loader.discounts


def test_order_summary_uses_settings():
    settings = Settings(
        free_shipping_threshold=Decimal("100000"), shipping_support_amount=Decimal("15000")
    )
    svc = CartService(settings=settings)
    svc.init()
    svc.add_to_cart(make_product("A1"), 1)

    summary = svc.get_order_summary()
    assert summary["shipping_support"] == Decimal("15000")
    assert summary["grand_total"] == Decimal("85000")


# ============ Жизненный цикл ============


def test_init_rehydrates_from_storage(storage):
    first = CartService(persistence=CartPersistence(storage, KEY))
    first.init()
    first.add_to_cart(make_product("A1"), 3)
    first.teardown()

    second = CartService(persistence=CartPersistence(storage, KEY))
    cart = second.init()

    assert cart == first.cart
    assert second.get_cart_item_count() == 3


def test_init_with_corrupted_storage_starts_empty(caplog):
    storage = MemoryStorage({KEY: "{not valid json"})
    svc = CartService(persistence=CartPersistence(storage, KEY))

    with caplog.at_level(logging.ERROR):
        cart = svc.init()

    assert cart.items == ()
    assert cart.total_items == 0
    assert "Error loading cart" in caplog.text


def test_init_with_non_finite_snapshot_starts_empty():
    text = '{"items": [{"productSKU": "A1", "currentPrice": 10, "quantity": Infinity}]}'
    svc = CartService(persistence=CartPersistence(MemoryStorage({KEY: text}), KEY))

    cart = svc.init()

    assert cart.items == ()
    assert svc.get_cart_item_count() == 0


def test_teardown_stops_autosave(service, storage):
    service.add_to_cart(make_product("A1"), 1)
    service.teardown()
    saved = storage.get_item(KEY)

    service.add_to_cart(make_product("B2"), 1)

    assert storage.get_item(KEY) == saved
    assert service.get_cart_item_count() == 2


def test_init_twice_subscribes_once(storage):
    svc = CartService(persistence=CartPersistence(storage, KEY))
    svc.init()
    svc.init()
    assert len(svc.store._listeners) == 1


def test_from_settings_uses_local_storage(tmp_path):
    settings = Settings(cart_storage_dir=str(tmp_path), api_base_url="")
    svc = CartService.from_settings(settings)
    svc.init()
    svc.add_to_cart(make_product("A1"), 2)

    raw = LocalStorage(str(tmp_path)).get_item(KEY)
    assert deserialize_cart(raw).value == svc.cart
    assert svc.refresh_discounts() == ()


# ============ CartStore ============


def test_store_listener_failure_does_not_break_dispatch(caplog):
    store = CartStore()
    seen = []
    store.subscribe(lambda cart: 1 / 0)
    store.subscribe(seen.append)

    with caplog.at_level(logging.ERROR):
        state = store.dispatch(update_quantity("A1", 2))

    assert seen == [state]
    assert "listener" in caplog.text


def test_store_unsubscribe():
    store = CartStore()
    seen = []
    unsubscribe = store.subscribe(seen.append)
    unsubscribe()
    unsubscribe()

    store.dispatch(update_quantity("A1", 2))
    assert seen == []


def test_serialized_state_matches_persisted(service, storage):
    service.add_to_cart(make_product("A1", "12345.67"), 2)
    assert storage.get_item(KEY) == serialize_cart(service.cart)
