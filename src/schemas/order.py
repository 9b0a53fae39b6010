"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.order import MAX_PRICE, MAX_QUANTITY, LineItem, OrderStatus


class LineItemSchema(BaseModel):
    """Schema for a single line item in a request or response."""

    model_config = ConfigDict(from_attributes=True)

    item_id: UUID = Field(description="Item UUID")
    quantity: int = Field(ge=0, le=MAX_QUANTITY, description="Quantity ordered")
    price: int = Field(ge=0, le=MAX_PRICE, description="Unit price")

    def to_line_item(self) -> LineItem:
        """Convert to the stored line item type."""
        return LineItem(item_id=self.item_id, quantity=self.quantity, price=self.price)


class OrderCreate(BaseModel):
    """Schema for creating an order via POST /orders."""

    customer_id: UUID = Field(description="Customer UUID")
    line_items: list[LineItemSchema] = Field(min_length=1, description="Items to order")


class OrderUpdate(BaseModel):
    """Schema for replacing an order's line items via PUT /orders/{order_id}.

    The customer cannot be changed; customer_id is accepted so clients
    can send back the full create payload.
    """

    customer_id: UUID = Field(description="Customer UUID")
    line_items: list[LineItemSchema] = Field(min_length=1, description="Replacement items")


class OrderStatusUpdate(BaseModel):
    """Schema for a lifecycle transition via POST /orders/{order_id}/status."""

    status: OrderStatus = Field(description="Lifecycle event to record")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    order_id: int = Field(description="Order identifier")
    customer_id: UUID = Field(description="Customer UUID")
    line_items: list[LineItemSchema] = Field(description="Order line items")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    shipped_at: datetime | None = Field(default=None, description="Shipping timestamp")
    completed_at: datetime | None = Field(default=None, description="Completion timestamp")
    cancelled_at: datetime | None = Field(default=None, description="Cancellation timestamp")


class PaginationMeta(BaseModel):
    """Pagination metadata for order list responses."""

    model_config = ConfigDict(from_attributes=True)

    total: int = Field(description="Total number of orders")
    limit: int = Field(description="Page size")
    offset: int = Field(description="Rank of the first order on the page")
    page: int = Field(description="1-based page number")
    total_pages: int = Field(description="Number of pages at this page size")


class OrderListResponse(BaseModel):
    """Schema for paginated order list responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="Orders in ascending id")
    meta: PaginationMeta = Field(description="Pagination metadata")
