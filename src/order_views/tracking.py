"""Customer-facing tracking: progress and wording per order status."""

PROGRESS = {
    "PENDING": 10,
    "CONFIRMED": 25,
    "PAYMENT_PROCESSING": 40,
    "PAID": 50,
    "PREPARING": 70,
    "SHIPPED": 85,
    "DELIVERED": 100,
    "CANCELLED": 0,
    "REFUNDED": 0,
}

PHRASES = {
    "PENDING": "Order received and being processed",
    "CONFIRMED": "Order confirmed, preparing for shipment",
    "PAYMENT_PROCESSING": "Processing payment",
    "PAID": "Payment confirmed, preparing order",
    "PREPARING": "Order is being prepared",
    "SHIPPED": "Order shipped, in transit",
    "DELIVERED": "Order delivered successfully",
    "CANCELLED": "Order cancelled",
    "REFUNDED": "Order refunded",
}

# Payment status shown on the order view after each order status
PAYMENT_STATUS = {
    "PENDING": "PENDING",
    "CONFIRMED": "PENDING",
    "PAYMENT_PROCESSING": "PROCESSING",
    "PAID": "COMPLETED",
    "PREPARING": "COMPLETED",
    "SHIPPED": "COMPLETED",
    "DELIVERED": "COMPLETED",
    "REFUNDED": "REFUNDED",
}


def progress_for(status: str) -> int:
    return PROGRESS.get(status, 0)


def phrase_for(status: str) -> str:
    return PHRASES.get(status, "Order status unknown")


def payment_status_for(status: str, refund_requested: bool = False) -> str:
    if status == "CANCELLED":
        return "REFUND_REQUESTED" if refund_requested else "CANCELLED"
    return PAYMENT_STATUS.get(status, "PENDING")
