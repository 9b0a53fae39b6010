"""Order entity persisted in the order store."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

MAX_ORDER_ID = 2**64 - 1
MAX_QUANTITY = 1000
MAX_PRICE = 1_000_000


class OrderStatus(str, Enum):
    """Lifecycle events an order can go through after creation."""

    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderStatusError(ValueError):
    """Raised when a lifecycle transition is not allowed."""


class LineItem(BaseModel):
    """A single purchased item.

    Stored as part of the line_items array of the order document.
    """

    item_id: UUID
    quantity: int = Field(ge=0, le=MAX_QUANTITY)
    price: int = Field(ge=0, le=MAX_PRICE)


class Order(BaseModel):
    """Order document as stored under ``order:<order_id>``.

    The lifecycle timestamps are only set once the corresponding
    event happened.
    """

    order_id: int = Field(ge=0, le=MAX_ORDER_ID)
    customer_id: UUID
    line_items: list[LineItem] = Field(min_length=1)
    created_at: datetime | None = None
    shipped_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    def set_status(self, status: OrderStatus) -> None:
        """Apply a lifecycle transition, stamping the current UTC time.

        Args:
            status: The lifecycle event to record.

        Raises:
            OrderStatusError: If the transition is not allowed from the
                current state.
        """
        now = datetime.now(timezone.utc)

        if status == OrderStatus.SHIPPED:
            if self.shipped_at is not None:
                raise OrderStatusError("order is already shipped")
            self.shipped_at = now
        elif status == OrderStatus.COMPLETED:
            if self.shipped_at is None:
                raise OrderStatusError("order must be shipped before it can be completed")
            if self.completed_at is not None:
                raise OrderStatusError("order is already completed")
            if self.cancelled_at is not None:
                raise OrderStatusError("order is cancelled and cannot be completed")
            self.completed_at = now
        elif status == OrderStatus.CANCELLED:
            if self.completed_at is not None:
                raise OrderStatusError("order is already completed and cannot be cancelled")
            if self.cancelled_at is not None:
                raise OrderStatusError("order is already cancelled")
            self.cancelled_at = now
        else:
            raise OrderStatusError(f"invalid status: {status!r}")
