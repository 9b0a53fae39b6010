"""Order API routes."""

import logging
import secrets
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status

from src.api.deps import OrderId, OrderRepo, Page
from src.api.middleware.error_handler import ConflictError
from src.models.order import Order, OrderStatusError
from src.schemas.order import (
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdate,
    PaginationMeta,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def generate_order_id() -> int:
    """Generate a random unsigned 64-bit order id.

    Collisions surface as a 409 from insert and are not retried.
    """
    return secrets.randbits(64)


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    responses={409: {"description": "Generated order id already in use"}},
)
async def create_order(data: OrderCreate, repository: OrderRepo) -> OrderResponse:
    """Create an order with a fresh random id.

    Args:
        data: Customer and line items.
        repository: Order storage.

    Returns:
        OrderResponse: The stored order.
    """
    order = Order(
        order_id=generate_order_id(),
        customer_id=data.customer_id,
        line_items=[item.to_line_item() for item in data.line_items],
        created_at=datetime.now(timezone.utc),
    )

    await repository.insert(order)
    logger.info("Created order %d for customer %s", order.order_id, order.customer_id)

    return OrderResponse.model_validate(order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Returns a page of orders in ascending order id.",
)
async def list_orders(page: Page, repository: OrderRepo) -> OrderListResponse:
    """List orders with limit/offset pagination.

    Args:
        page: Validated limit and offset.
        repository: Order storage.

    Returns:
        OrderListResponse: Orders on the page and pagination metadata.
    """
    result = await repository.find_all(limit=page.limit, offset=page.offset)

    return OrderListResponse(
        items=[OrderResponse.model_validate(order) for order in result.orders],
        meta=PaginationMeta.model_validate(result.pagination),
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order by ID")
async def get_order(order_id: OrderId, repository: OrderRepo) -> OrderResponse:
    """Get a single order by ID.

    Raises:
        OrderNotFoundError: Rendered as 404 by the error middleware.
    """
    order = await repository.find_by_id(order_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}", response_model=OrderResponse, summary="Replace order line items")
async def update_order(order_id: OrderId, data: OrderUpdate, repository: OrderRepo) -> OrderResponse:
    """Replace the line items of an existing order.

    The order id, customer and lifecycle timestamps are kept.
    """
    order = await repository.find_by_id(order_id)
    order.line_items = [item.to_line_item() for item in data.line_items]

    await repository.update(order_id, order)

    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Record a lifecycle event",
    responses={409: {"description": "Transition not allowed from the current state"}},
)
async def update_order_status(
    order_id: OrderId,
    data: OrderStatusUpdate,
    repository: OrderRepo,
) -> OrderResponse:
    """Mark an order shipped, completed or cancelled.

    Raises:
        ConflictError: 409 if the transition is not allowed.
    """
    order = await repository.find_by_id(order_id)

    try:
        order.set_status(data.status)
    except OrderStatusError as e:
        raise ConflictError(str(e)) from e

    await repository.update(order_id, order)
    logger.info("Order %d marked %s", order_id, data.status.value)

    return OrderResponse.model_validate(order)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete order",
)
async def delete_order(order_id: OrderId, repository: OrderRepo) -> Response:
    """Delete an order and its index entry."""
    await repository.delete(order_id)
    logger.info("Deleted order %d", order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
