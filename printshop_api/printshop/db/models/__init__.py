"""
ORM models for orders (direct, chat-channel, pooled), inventory and
notifications.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .orders import (  # noqa: F401
    Order,
    LineItem,
    ChatOrder,
    OrderPage,
    PoolAssignment,
    OrderStatusEvent,
)
from .inventory import (  # noqa: F401
    Material,
    MaterialMove,
    MaterialReservation,
    ProductMaterial,
)
from .notifications import (  # noqa: F401
    NotificationRule,
    NotificationLog,
)
