"""
Domain models for the license API.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class LicenseCreateRequest(BaseModel):
    """Payload for create-license."""

    email: str
    customer_name: str
    plugin_slug: str
    license_type: str = "basic"
    order_id: int
    subscription_id: int
    trial_expires: Optional[datetime] = None
    max_staff: Optional[int] = None


class License(BaseModel):
    """License record returned by the license API."""

    serial_key: str
    status: Optional[str] = None
    expires_at: Optional[str] = None
    plugin_slug: Optional[str] = None
    download_url: Optional[str] = None


class LicenseUpdateResult(BaseModel):
    """Outcome of update-license."""

    license_key: str
    status: str
    expires_at: Optional[str] = None
