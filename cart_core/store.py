import logging
from typing import Callable, List, Optional
from .domain import Cart, CartAction, empty_cart
from .reducer import reduce_cart, now_iso

logger = logging.getLogger(__name__)

Listener = Callable[[Cart], None]


class CartStore:
    """
    Единственный источник правды о корзине.
    dispatch применяет чистый reduce_cart и оповещает подписчиков новым снимком.
    """

    def __init__(self, initial: Optional[Cart] = None):
        self._state = initial if initial is not None else empty_cart(now_iso())
        self._listeners: List[Listener] = []

    @property
    def state(self) -> Cart:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Возвращает функцию отписки"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, action: CartAction) -> Cart:
        self._state = reduce_cart(self._state, action)
        self._notify()
        return self._state

    def _notify(self) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(self._state)
            except Exception:
                # подписчик не должен ломать корзину и остальных подписчиков
                logger.exception("Cart listener %r failed", listener)
