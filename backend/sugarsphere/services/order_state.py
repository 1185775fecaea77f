# Overview: Order status values and the legal transitions between them.

"""
Order lifecycle:

    created -> paid -> processing -> shipped -> delivered
    created -> failed
    created -> cancelled
    paid | processing | shipped | delivered -> refunded

Fulfilment may skip forward (paid -> shipped) but never move backwards or
stay in place. failed, cancelled and refunded are terminal; delivered only
leaves to refunded.
"""

CREATED = "created"
PAID = "paid"
PROCESSING = "processing"
SHIPPED = "shipped"
DELIVERED = "delivered"
CANCELLED = "cancelled"
FAILED = "failed"
REFUNDED = "refunded"

ALL_STATUSES = (CREATED, PAID, PROCESSING, SHIPPED, DELIVERED, CANCELLED, FAILED, REFUNDED)

FULFILMENT_CHAIN = (PAID, PROCESSING, SHIPPED, DELIVERED)

# Orders whose payment has been captured; these count toward revenue
COMPLETED_STATUSES = frozenset(FULFILMENT_CHAIN)

# What an admin may set by hand. refunded only arrives from the gateway.
ADMIN_SETTABLE_STATUSES = (PAID, PROCESSING, SHIPPED, DELIVERED, CANCELLED)

STATUS_MESSAGES = {
    PAID: "Your payment has been confirmed.",
    PROCESSING: "Your order is being processed and will be shipped soon.",
    SHIPPED: "Your order has been shipped and is on its way!",
    DELIVERED: "Your order has been delivered. Enjoy your sweets!",
    CANCELLED: "Your order has been cancelled.",
    FAILED: "Your payment could not be completed.",
    REFUNDED: "Your payment has been refunded.",
}
DEFAULT_STATUS_MESSAGE = "Your order status has been updated."


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return False

    if current == CREATED:
        return target in (PAID, FAILED, CANCELLED)

    if current in FULFILMENT_CHAIN:
        if target == REFUNDED:
            return True
        if target in FULFILMENT_CHAIN:
            return FULFILMENT_CHAIN.index(target) > FULFILMENT_CHAIN.index(current)

    return False


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(status, DEFAULT_STATUS_MESSAGE)
