import sys
import os
import atexit
import streamlit as st

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from cart_core.config import Settings, configure_logging
from cart_core.formatting import format_vnd
from cart_core.pricing import (
    discount_for_quantity,
    has_sale_price,
    line_savings,
    line_total,
    price_for_quantity,
)
from cart_core.service import CartService
from cart_core.transforms import load_catalog

CATALOG_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "catalog.json")


# ============ Кэширование данных ============
@st.cache_resource
def get_settings() -> Settings:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return settings


@st.cache_data
def get_catalog():
    return load_catalog(CATALOG_PATH)


def get_cart_service() -> CartService:
    """Один сервис корзины на сессию браузера (аналог провайдера)"""
    if "cart_service" not in st.session_state:
        service = CartService.from_settings(settings)
        service.init()
        service.refresh_discounts()
        if not settings.api_base_url:
            # без бэкенда - демо-скидки из каталога
            service.discounts = demo_discounts
        atexit.register(service.teardown)
        st.session_state.cart_service = service
    return st.session_state.cart_service


# ============ Инициализация ============
st.set_page_config(
    page_title="Ha Food - Giỏ hàng",
    page_icon="🛒",
    layout="wide",
    initial_sidebar_state="expanded",
)

settings = get_settings()
products, demo_discounts = get_catalog()
cart_service = get_cart_service()


# ============ HEADER ============
st.title("🛒 Ha Food")
st.caption("Каталог, корзина и оптовые скидки")

# ============ SIDEBAR - Навигация ============
with st.sidebar:
    st.header("📂 Навигация")
    page = st.radio(
        "Выберите раздел:",
        ["🏪 Каталог", "🛒 Корзина", "🏷️ Скидки"],
        label_visibility="collapsed",
    )

    st.divider()
    st.metric("Товаров в корзине", cart_service.get_cart_item_count())
    st.metric("Итого со скидкой", format_vnd(cart_service.get_discounted_total()))


# ============ PAGE: КАТАЛОГ ============
if page == "🏪 Каталог":
    st.header("🏪 Каталог товаров")

    for p in products:
        with st.container():
            cols = st.columns([5, 2, 2, 2])
            with cols[0]:
                st.markdown(f"**{p.product_name}**")
                st.caption(f"{p.sku} · {p.product_type} · остаток {p.quantity}")
            with cols[1]:
                st.write(format_vnd(p.current_price))
                if p.original_price > p.current_price:
                    st.caption(f"~~{format_vnd(p.original_price)}~~")
            with cols[2]:
                qty = st.number_input(
                    "Кол-во",
                    min_value=1,
                    value=1,
                    key=f"qty_{p.sku}",
                    label_visibility="collapsed",
                    disabled=not p.available,
                )
                # цена за штуку после добавления, с учётом того что уже в корзине
                in_cart_qty = cart_service.get_cart_item(p.sku).map(lambda i: i.quantity).get_or_else(0)
                target = min(in_cart_qty + int(qty), p.quantity)
                tier = discount_for_quantity(target, cart_service.discounts)
                if p.available and tier.is_some():
                    unit = price_for_quantity(p.current_price, target, cart_service.discounts)
                    st.caption(f"{format_vnd(unit)}/шт. (-{tier.value.discount_percent}%)")
            with cols[3]:
                in_cart = cart_service.is_in_cart(p.sku)
                label = "➕ Ещё" if in_cart else "➕ В корзину"
                if st.button(label, key=f"add_{p.sku}", disabled=not p.available):
                    cart_service.add_to_cart(p, int(qty))
                    st.rerun()
                if not p.available:
                    st.caption("Нет в наличии")
            st.divider()


# ============ PAGE: КОРЗИНА ============
elif page == "🛒 Корзина":
    st.header("🛒 Ваша корзина")

    cart = cart_service.cart

    if not cart.items:
        st.info("🛍️ Корзина пуста. Перейдите в каталог!")
    else:
        for item in cart.items:
            price = cart_service.get_item_discounted_price(item)
            discount = cart_service.get_applicable_discount(item)

            cols = st.columns([5, 2, 2, 2, 1])
            with cols[0]:
                st.write(f"**{item.product_name}**")
                st.caption(item.product_sku)
            with cols[1]:
                st.write(format_vnd(price))
                if has_sale_price(item):
                    st.caption(f"~~{format_vnd(item.original_price)}~~")
                if discount.is_some():
                    st.caption(f"({discount.value.discount_percent}% скидка)")
            with cols[2]:
                new_qty = st.number_input(
                    "Кол-во",
                    min_value=0,
                    max_value=max(item.max_quantity, item.quantity),
                    value=item.quantity,
                    key=f"cart_qty_{item.product_sku}",
                    label_visibility="collapsed",
                )
                if new_qty != item.quantity:
                    cart_service.update_quantity(item.product_sku, int(new_qty))
                    st.rerun()
            with cols[3]:
                st.write(format_vnd(price * item.quantity))
                savings = line_savings(item, cart_service.discounts)
                if savings > 0:
                    st.caption(f"~~{format_vnd(line_total(item))}~~ · экономия {format_vnd(savings)}")
            with cols[4]:
                if st.button("🗑️", key=f"remove_{item.product_sku}"):
                    cart_service.remove_from_cart(item.product_sku)
                    st.rerun()

        st.divider()

        summary = cart_service.get_order_summary()
        col1, col2 = st.columns(2)
        with col1:
            st.metric("Подытог", format_vnd(summary["subtotal"]))
            if summary["discount_amount"] > 0:
                st.metric("Скидка", f"-{format_vnd(summary['discount_amount'])}")
        with col2:
            if summary["shipping_support"] > 0:
                st.metric("Помощь с доставкой", f"-{format_vnd(summary['shipping_support'])}")
            else:
                st.metric("Доставка", "Уточняется")

        st.markdown(f"### 💰 Итого: **{format_vnd(summary['grand_total'])}**")

        if st.button("🧹 Очистить корзину", use_container_width=True):
            cart_service.clear_cart()
            st.rerun()


# ============ PAGE: СКИДКИ ============
elif page == "🏷️ Скидки":
    st.header("🏷️ Оптовые скидки")

    if not cart_service.discounts:
        st.info("Скидки сейчас недоступны - цены без скидок.")
    else:
        for d in sorted(cart_service.discounts, key=lambda d: d.min_quantity):
            status = "✅" if d.is_active else "⏸️"
            st.write(f"{status} от **{d.min_quantity}** шт.: **{d.discount_percent}%**")

    if settings.api_base_url and st.button("🔄 Обновить скидки"):
        cart_service.refresh_discounts()
        st.rerun()
