"""
Domain models exchanged with the payment processor gateway.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class RemoteObject(BaseModel):
    """Minimal view of a processor object (customer, product, price, payment method)."""

    id: str
    deleted: bool = False
    customer: Optional[str] = None  # payment methods: attached customer


class RemoteSubscriptionRequest(BaseModel):
    """Parameters for creating a processor subscription."""

    customer_id: str
    price_id: str
    metadata: dict[str, str] = Field(default_factory=dict)
    trial_period_days: Optional[int] = None
    billing_cycle_anchor: datetime
    default_payment_method: Optional[str] = None
    days_until_due: int = 7

    def to_params(self) -> dict:
        params = {
            "customer": self.customer_id,
            "items": [{"price": self.price_id}],
            "metadata": self.metadata,
            "billing_cycle_anchor": int(self.billing_cycle_anchor.timestamp()),
            "proration_behavior": "none",
        }
        if self.trial_period_days:
            params["trial_period_days"] = self.trial_period_days

        if self.default_payment_method:
            params["default_payment_method"] = self.default_payment_method
            params["payment_behavior"] = "default_incomplete"
        else:
            # Processor emails the customer an invoice to pay
            params["payment_behavior"] = "allow_incomplete"
            params["collection_method"] = "send_invoice"
            params["days_until_due"] = self.days_until_due
        return params
