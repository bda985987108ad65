"""
Purchasing Configuration Schema.

Order numbering settings.  Values come from ``stock_config`` at runtime;
the composition root builds this object from the loaded settings.
"""

from dataclasses import dataclass
from typing import Self


@dataclass(frozen=True)
class PurchasingConfig:
    """
    Configuration schema for the purchasing module.

        config = PurchasingConfig(order_number_prefix="PO-", order_number_width=4)
        config.format_order_number(1)   # "PO-0001"
    """

    order_number_prefix: str = "OC-"
    # Number given to the first order
    order_number_start: int = 1
    order_number_width: int = 6

    def __post_init__(self) -> None:
        if self.order_number_start < 0:
            raise ValueError("order_number_start must be >= 0")
        if self.order_number_width < 1:
            raise ValueError("order_number_width must be >= 1")

    def format_order_number(self, counter: int) -> str:
        """Order number for the ``counter``-th order (counter starts at 1)."""
        number = self.order_number_start + counter - 1
        return f"{self.order_number_prefix}{number:0{self.order_number_width}d}"

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()
