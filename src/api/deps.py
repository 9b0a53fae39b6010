"""FastAPI dependency injection functions."""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Path, Query

from src.api.middleware.error_handler import ValidationError
from src.core.config import get_settings
from src.models.order import MAX_ORDER_ID
from src.services.order_repository import OrderRepository, get_order_repository


@dataclass
class PageParams:
    """Validated limit/offset window for list endpoints."""

    limit: int
    offset: int


async def get_page_params(
    limit: Annotated[int | None, Query(description="Orders per page")] = None,
    offset: Annotated[int, Query(ge=0, description="Rank of the first order to return")] = 0,
) -> PageParams:
    """Resolve the requested page window against the configured page size bounds.

    Args:
        limit: Requested page size, defaults to the configured page size.
        offset: Rank of the first order on the page.

    Returns:
        PageParams: The validated window.

    Raises:
        ValidationError: 422 if limit is outside 1..max_page_size.
    """
    settings = get_settings()
    if limit is None:
        limit = settings.default_page_size

    if limit < 1 or limit > settings.max_page_size:
        message = f"limit must be between 1 and {settings.max_page_size}"
        raise ValidationError(
            message=message,
            details=[{"loc": ["query", "limit"], "msg": message, "type": "value_error"}],
        )

    return PageParams(limit=limit, offset=offset)


# Type aliases for cleaner dependency injection
OrderRepo = Annotated[OrderRepository, Depends(get_order_repository)]
Page = Annotated[PageParams, Depends(get_page_params)]
OrderId = Annotated[int, Path(ge=0, le=MAX_ORDER_ID, description="Order identifier")]
