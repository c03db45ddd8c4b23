"""
Timezone utilities for the booking engine.

Bookings store tenant wall-clock times (naive datetimes). "Now" for
lead-time and notice-window rules is therefore taken in the tenant's
timezone and stripped of tzinfo before comparison.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import pytz

from .config import settings

if TYPE_CHECKING:
    from ..models.tenant import Tenant


def get_tenant_timezone(tenant: Optional["Tenant"]) -> pytz.BaseTzInfo:
    """
    Get the tenant's timezone, falling back to the configured default.

    Args:
        tenant: Tenant object (may be None for orphaned records)

    Returns:
        Tenant's timezone as pytz timezone object
    """
    name = getattr(tenant, "timezone", None) or settings.default_timezone
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(settings.default_timezone)


def get_tenant_now(tenant: Optional["Tenant"]) -> datetime:
    """Current wall-clock time at the tenant, as a naive datetime."""
    return datetime.now(get_tenant_timezone(tenant)).replace(tzinfo=None)


def get_tenant_today(tenant: Optional["Tenant"]) -> date:
    """'Today' in the tenant's timezone."""
    return get_tenant_now(tenant).date()
