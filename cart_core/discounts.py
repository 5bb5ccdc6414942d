"""Discount catalog loader: one read-only fetch of quantity-tier rules."""
import asyncio
import logging
from typing import Optional, Tuple
import requests
from .domain import Discount
from .transforms import unwrap_envelope, discount_from_dict

logger = logging.getLogger(__name__)


class DiscountCatalogLoader:
    """
    Загружает список оптовых скидок с бэкенда.
    Любая ошибка сети или формата - пустой каталог (цены без скидок).
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self):
        """
        GET каталога скидок.

        Returns:
            Разобранный JSON ответа

        Raises:
            requests.RequestException: сетевая ошибка или статус не 2xx
            ValueError: тело ответа не JSON
        """
        response = self.session.get(
            self.url, headers={"Accept": "application/json"}, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()

    def load(self) -> Tuple[Discount, ...]:
        if not self.url:
            logger.info("[Discounts] API URL is not configured, using empty catalog")
            return ()

        logger.info(f"[Discounts] Fetching discount catalog from {self.url}")

        try:
            payload = self.fetch()
        except requests.RequestException as e:
            logger.error(f"[Discounts] Error fetching discounts: {e}")
            return ()
        except ValueError as e:
            logger.error(f"[Discounts] Invalid discounts response: {e}")
            return ()

        rows = unwrap_envelope(payload)
        if rows.is_left:
            logger.error(f"[Discounts] {rows.value['error']}")
            return ()

        parsed = tuple(map(discount_from_dict, rows.value))
        for bad in (r for r in parsed if r.is_left):
            logger.warning(f"[Discounts] Skipping discount: {bad.value['error']}")

        discounts = tuple(r.value for r in parsed if r.is_right)
        logger.info(f"[Discounts] Loaded {len(discounts)} discount(s)")
        return discounts

    async def load_async(self) -> Tuple[Discount, ...]:
        """Та же загрузка в отдельном потоке, не блокирует цикл событий"""
        return await asyncio.to_thread(self.load)
