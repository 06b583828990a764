"""Status values as stored in meal_subscriptions.status / meal_deliveries.status"""

# Subscription statuses
STATUS_ACTIVE = "active"
STATUS_PAUSED = "paused"
STATUS_CANCELLED = "cancelled"  # terminal

SUBSCRIPTION_STATUSES = [STATUS_ACTIVE, STATUS_PAUSED, STATUS_CANCELLED]

# Delivery statuses
DELIVERY_SCHEDULED = "scheduled"
DELIVERY_DELIVERED = "delivered"  # immutable once reached
DELIVERY_CANCELLED = "cancelled"

DELIVERY_STATUSES = [DELIVERY_SCHEDULED, DELIVERY_DELIVERED, DELIVERY_CANCELLED]
