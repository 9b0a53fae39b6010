"""Stored entity definitions."""

from src.models.order import LineItem, Order, OrderStatus, OrderStatusError

__all__ = [
    "LineItem",
    "Order",
    "OrderStatus",
    "OrderStatusError",
]
