# storefront/services/settings_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.domain.errors import PricingConfigError
from storefront.domain.pricing import PricingSettings
from storefront.repos.customer_repo import SettingsRepo


class SettingsService:
    def __init__(self, db: Session):
        self.repo = SettingsRepo(db)

    def get_pricing_settings(self) -> PricingSettings:
        settings = self.repo.get_settings()
        if not settings:
            # brak konfiguracji = blad wdrozenia, nie uzytkownika
            raise PricingConfigError("store_settings", None)

        threshold = settings.free_delivery_threshold
        return PricingSettings(
            delivery_fee=Decimal(settings.delivery_fee),
            free_delivery_threshold=Decimal(threshold) if threshold is not None else None,
        )

    def get_store_address(self) -> str | None:
        settings = self.repo.get_settings()
        return settings.store_address if settings else None
