"""Configuration for the storefront cart."""
import os
import logging
from dataclasses import dataclass
from decimal import Decimal
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    """Настройки корзины; значения по умолчанию совпадают с витриной"""

    # Backend API (пустой адрес - скидки не загружаются)
    api_base_url: str = ""
    discounts_path: str = "/api/discounts"
    http_timeout: float = 10.0

    # Local storage
    cart_storage_key: str = "ha-food-cart"
    cart_storage_dir: str = ".storage"

    # Shipping support (VND)
    free_shipping_threshold: Decimal = Decimal("400000")
    shipping_support_amount: Decimal = Decimal("30000")

    log_level: str = "INFO"

    @property
    def discounts_url(self) -> str:
        if not self.api_base_url:
            return ""
        return self.api_base_url.rstrip("/") + "/" + self.discounts_path.lstrip("/")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            api_base_url=os.getenv("API_BASE_URL", ""),
            discounts_path=os.getenv("DISCOUNTS_PATH", "/api/discounts"),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "10")),
            cart_storage_key=os.getenv("CART_STORAGE_KEY", "ha-food-cart"),
            cart_storage_dir=os.getenv("CART_STORAGE_DIR", ".storage"),
            free_shipping_threshold=Decimal(os.getenv("FREE_SHIPPING_THRESHOLD", "400000")),
            shipping_support_amount=Decimal(os.getenv("SHIPPING_SUPPORT_AMOUNT", "30000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
