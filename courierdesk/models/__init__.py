"""Database models — re-exports every model.

Import from here:  from courierdesk.models import User, DeliveryRequest, ...
Or from submodules: from courierdesk.models.auth import User
"""

from .base import Base  # noqa: F401

# Auth & Users
from .auth import User  # noqa: F401

# Core: Requests & Resolutions
from .requests import DeliveryRequest  # noqa: F401
from .resolutions import Resolution  # noqa: F401

# Pricing
from .pricing import PricingRule  # noqa: F401

# Email outbox
from .notifications import Notification  # noqa: F401
