"""Redis-backed order storage.

Each order is stored as a JSON document under ``order:<order_id>`` and
registered in a single sorted set (the order index) whose member is the
primary key and whose score is the order id. The index gives a stable,
ascending-id ordering used for offset pagination.

Insert and delete touch both structures inside one MULTI/EXEC
transaction so readers never observe one write without the other.
"""

from dataclasses import dataclass, field

import redis.asyncio as redis
from pydantic import ValidationError
from pydantic_core import PydanticSerializationError
from redis.exceptions import RedisError, WatchError

from src.core.config import get_settings
from src.core.redis import get_redis_client
from src.models.order import Order


class OrderRepositoryError(Exception):
    """Base class for order storage failures."""

    def __init__(self, message: str) -> None:
        """Initialize repository error.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class OrderNotFoundError(OrderRepositoryError):
    """No order is stored under the requested id."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"order {order_id} not found")


class OrderAlreadyExistsError(OrderRepositoryError):
    """An order is already stored under the id being inserted."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"order {order_id} already exists")


class OrderEncodingError(OrderRepositoryError):
    """The order could not be serialized."""


class OrderDecodingError(OrderRepositoryError):
    """A stored order document could not be turned back into an Order."""


class StoreUnavailableError(OrderRepositoryError):
    """The store could not be reached or rejected the command."""


@dataclass(frozen=True)
class Pagination:
    """Page position and size metadata for a find_all result."""

    total: int
    limit: int
    offset: int
    page: int
    total_pages: int

    @classmethod
    def compute(cls, total: int, limit: int, offset: int) -> "Pagination":
        """Derive page numbers from the index size and the requested window.

        A zero limit yields page 1 of 0 rather than dividing by zero.
        Partial last pages count as full pages.
        """
        if limit > 0:
            page = offset // limit + 1
            total_pages = -(-total // limit)
        else:
            page = 1
            total_pages = 0
        return cls(total=total, limit=limit, offset=offset, page=page, total_pages=total_pages)


@dataclass(frozen=True)
class OrderPage:
    """One page of orders in ascending order id."""

    pagination: Pagination
    orders: list[Order] = field(default_factory=list)


def order_key(order_id: int) -> str:
    """Primary key of an order document."""
    return f"order:{order_id}"


def encode_order(order: Order) -> str:
    """Serialize an order to its stored JSON form.

    Raises:
        OrderEncodingError: If the order cannot be serialized.
    """
    try:
        return order.model_dump_json()
    except PydanticSerializationError as e:
        raise OrderEncodingError(f"failed to encode order {order.order_id}: {e}") from e


def decode_order(value: str | bytes, key: str) -> Order:
    """Deserialize a stored JSON document into an Order.

    Raises:
        OrderDecodingError: If the document is not a valid order.
    """
    try:
        return Order.model_validate_json(value)
    except ValidationError as e:
        raise OrderDecodingError(f"failed to decode {key}: {e}") from e


class OrderRepository:
    """Order storage over a Redis primary keyspace and sorted-set index.

    Holds no mutable state of its own; a single instance may be shared
    by concurrent requests.
    """

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        index_key: str | None = None,
    ) -> None:
        """Initialize order repository.

        Args:
            redis_client: Optional Redis client for testing.
            index_key: Optional sorted set name, defaults to settings.
        """
        self._redis_client = redis_client
        self.index_key = index_key or get_settings().orders_index_key

    @property
    def redis(self) -> redis.Redis:
        """Get Redis client."""
        if self._redis_client is None:
            self._redis_client = get_redis_client()
        return self._redis_client

    async def insert(self, order: Order) -> None:
        """Store a new order and add it to the index atomically.

        The primary key is watched so a concurrent insert of the same id
        aborts the transaction instead of overwriting it.

        Args:
            order: Fully populated order with a fresh id.

        Raises:
            OrderAlreadyExistsError: If the id is already taken.
            OrderEncodingError: If the order cannot be serialized.
            StoreUnavailableError: On any Redis failure.
        """
        payload = encode_order(order)
        key = order_key(order.order_id)

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if await pipe.exists(key):
                    raise OrderAlreadyExistsError(order.order_id)

                pipe.multi()
                pipe.set(key, payload, nx=True)
                # Scores are doubles: ids above 2**53 may tie and then sort by member text
                pipe.zadd(self.index_key, {key: order.order_id})
                created, _ = await pipe.execute()
        except WatchError as e:
            raise OrderAlreadyExistsError(order.order_id) from e
        except RedisError as e:
            raise StoreUnavailableError(f"failed to insert order {order.order_id}: {e}") from e

        if not created:
            raise OrderAlreadyExistsError(order.order_id)

    async def find_by_id(self, order_id: int) -> Order:
        """Load a single order.

        Raises:
            OrderNotFoundError: If no order has this id.
            OrderDecodingError: If the stored document is corrupt.
            StoreUnavailableError: On any Redis failure.
        """
        key = order_key(order_id)
        try:
            value = await self.redis.get(key)
        except UnicodeDecodeError as e:
            # The client decodes replies before they reach the codec
            raise OrderDecodingError(f"failed to decode {key}: {e}") from e
        except RedisError as e:
            raise StoreUnavailableError(f"failed to get order {order_id}: {e}") from e

        if value is None:
            raise OrderNotFoundError(order_id)

        return decode_order(value, key)

    async def update(self, order_id: int, order: Order) -> None:
        """Overwrite an existing order document.

        The index is never touched: the id, and with it the order's
        position, cannot change.

        Raises:
            ValueError: If order.order_id differs from order_id.
            OrderNotFoundError: If no order has this id.
            OrderEncodingError: If the order cannot be serialized.
            StoreUnavailableError: On any Redis failure.
        """
        if order.order_id != order_id:
            raise ValueError(f"order id {order.order_id} does not match {order_id}")

        payload = encode_order(order)
        try:
            updated = await self.redis.set(order_key(order_id), payload, xx=True)
        except RedisError as e:
            raise StoreUnavailableError(f"failed to update order {order_id}: {e}") from e

        if not updated:
            raise OrderNotFoundError(order_id)

    async def delete(self, order_id: int) -> None:
        """Remove an order and its index entry atomically.

        The index entry is pruned even when the document is already gone.

        Raises:
            OrderNotFoundError: If no order document existed.
            StoreUnavailableError: On any Redis failure.
        """
        key = order_key(order_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                pipe.zrem(self.index_key, key)
                deleted, _ = await pipe.execute()
        except RedisError as e:
            raise StoreUnavailableError(f"failed to delete order {order_id}: {e}") from e

        if not deleted:
            raise OrderNotFoundError(order_id)

    async def count(self) -> int:
        """Number of orders in the index."""
        try:
            return await self.redis.zcard(self.index_key)
        except RedisError as e:
            raise StoreUnavailableError(f"failed to count orders: {e}") from e

    async def find_all(self, limit: int, offset: int = 0) -> OrderPage:
        """Fetch one page of orders in ascending order id.

        Args:
            limit: Page size. Zero returns an empty page 1 of 0.
            offset: Rank of the first order on the page.

        Returns:
            OrderPage: The orders on the page and pagination metadata.

        Raises:
            ValueError: If limit or offset is negative.
            OrderDecodingError: If an indexed order is missing or corrupt.
            StoreUnavailableError: On any Redis failure.
        """
        if limit < 0 or offset < 0:
            raise ValueError("limit and offset must not be negative")

        total = await self.count()
        pagination = Pagination.compute(total, limit, offset)

        # ZRANGE treats a negative end as counting from the tail
        if total == 0 or limit == 0 or offset >= total:
            return OrderPage(pagination=pagination)

        end = min(offset + limit - 1, total - 1)

        try:
            keys = await self.redis.zrange(self.index_key, offset, end)
            values = await self.redis.mget(keys) if keys else []
        except UnicodeDecodeError as e:
            raise OrderDecodingError(f"failed to decode orders {offset}..{end}: {e}") from e
        except RedisError as e:
            raise StoreUnavailableError(f"failed to list orders: {e}") from e

        orders = []
        for key, value in zip(keys, values):
            if value is None:
                raise OrderDecodingError(f"index entry {key} has no stored order")
            orders.append(decode_order(value, key))

        return OrderPage(pagination=pagination, orders=orders)


def get_order_repository() -> OrderRepository:
    """Get order repository instance.

    Returns:
        OrderRepository: Repository bound to the shared Redis client.
    """
    return OrderRepository()
