from decimal import Decimal
from typing import Optional

from ECommerceStorefront.models import DiscountState


class DiscountStrategy:

    def __init__(self, name: str):
        self.name = name

    def validate_discount_code(self, code: Optional[str]) -> bool:
        raise NotImplementedError

    def discount_state(self, code: str) -> DiscountState:
        raise NotImplementedError

    def success_message(self) -> str:
        raise NotImplementedError


class PromoCodeStrategy(DiscountStrategy):
    """Fixed-rate discount unlocked by a single promo code, matched case-insensitively."""

    def __init__(self, code: str, rate: Decimal):
        super().__init__(name=f"PromoCode:{code.upper()}")
        self.code = code
        self.rate = rate

    def validate_discount_code(self, code: Optional[str]) -> bool:
        if not code:
            return False
        return code.lower() == self.code.lower()

    def discount_state(self, code: str) -> DiscountState:
        return DiscountState(rate=self.rate, code=code.upper())

    def success_message(self) -> str:
        return f"Code {self.code.upper()} applied successfully!"
