from equipcare.services.notifications.routing import (
    DEFAULT_DESTINATION,
    ROUTE_TABLE,
    NotificationCategory,
    route,
)
from equipcare.services.notifications.inapp import (
    add_notifications,
    build_notification,
    list_notifications,
    mark_notification_read,
    serialize_notification,
)

__all__ = [
    "DEFAULT_DESTINATION",
    "ROUTE_TABLE",
    "NotificationCategory",
    "route",
    "add_notifications",
    "build_notification",
    "list_notifications",
    "mark_notification_read",
    "serialize_notification",
]
