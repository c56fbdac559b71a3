"""
Cart store and the cart mutation engine (add, decrement, view).
"""
import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from storefront.catalog_service import CatalogLookup
from storefront.config import Config
from storefront.exceptions import (
    CartNotFoundError,
    InvalidRequestError,
    ItemNotFoundError,
    ItemNotInCartError,
)
from storefront.middleware import hash_identifier
from storefront.models import (
    Cart,
    CartLine,
    CartLineView,
    CartView,
    ProductSummary,
    SourceKind,
    normalize_item_id,
    utcnow,
)
from storefront.redis_client import RedisClient

logger = logging.getLogger(__name__)


def coerce_quantity(value: Any) -> int:
    """
    Turn a requested quantity into a positive int.

    Anything that is not a positive whole number (text, booleans, None,
    zero, negatives, fractions) becomes 1 rather than an error. Amounts
    above MAX_QUANTITY_PER_ITEM are clamped to it.
    """
    if value is None or isinstance(value, bool):
        return 1
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return 1
    if not number.is_finite() or number != number.to_integral_value() or number <= 0:
        return 1
    if number > Config.MAX_QUANTITY_PER_ITEM:
        return Config.MAX_QUANTITY_PER_ITEM
    return int(number)


class CartStore:
    """Redis-backed cart documents, one key per owner.

    Saves overwrite the whole document, so concurrent writers for the same
    owner resolve as last-writer-wins.
    """

    def __init__(self, redis: RedisClient):
        self.redis = redis

    def _get_cart_key(self, user_id: str) -> str:
        """Generate Redis key for cart"""
        return f"cart:{user_id}"

    async def find(self, user_id: str) -> Optional[Cart]:
        raw = await self.redis.get(self._get_cart_key(user_id))
        if raw is None:
            return None
        return Cart.model_validate_json(raw)

    async def load(self, user_id: str) -> Cart:
        """Stored cart, or an unsaved empty one"""
        cart = await self.find(user_id)
        if cart is None:
            return Cart(owner=user_id, lines=[])
        return cart

    async def save(self, cart: Cart) -> None:
        now = utcnow()
        if cart.created_at is None:
            cart.created_at = now
        cart.updated_at = now
        await self.redis.set(
            self._get_cart_key(cart.owner),
            cart.model_dump_json(),
            ex=Config.CART_TTL_SECONDS,
        )


class CartService:
    """Service for cart operations"""

    def __init__(self, redis: RedisClient):
        self.catalog = CatalogLookup(redis)
        self.store = CartStore(redis)

    async def add_item(
        self,
        user_id: str,
        item_id: Optional[str],
        quantity: Any = 1,
        selected_size: str = "",
        selected_color: str = "",
    ) -> CartView:
        """
        Add an item to the user's cart, merging with an existing line that
        has the same item and variant.

        A merged line gets its quantity increased and its name, price,
        image and source kind re-copied from the catalog. A new line is
        appended at the end.

        Raises:
            InvalidRequestError: item_id is missing
            ItemNotFoundError: no catalog has item_id
        """
        item_id = normalize_item_id(item_id)
        if item_id is None:
            raise InvalidRequestError("item_id is required")
        quantity = coerce_quantity(quantity)

        resolved = await self.catalog.resolve(item_id)
        if resolved is None:
            raise ItemNotFoundError(item_id)
        item, kind = resolved

        cart = await self.store.load(user_id)
        line = next(
            (entry for entry in cart.lines if entry.matches(item_id, selected_size, selected_color)),
            None,
        )

        if line is not None:
            line.quantity = min(line.quantity + quantity, Config.MAX_QUANTITY_PER_ITEM)
            line.price_snapshot = item.price
            line.name_snapshot = item.name
            line.image_snapshot = item.image or ""
            line.source_kind = kind
        else:
            cart.lines.append(CartLine(
                line_id=uuid.uuid4().hex,
                item_ref=item_id,
                source_kind=kind,
                quantity=quantity,
                selected_size=selected_size,
                selected_color=selected_color,
                price_snapshot=item.price,
                name_snapshot=item.name,
                image_snapshot=item.image or "",
            ))

        await self.store.save(cart)
        logger.info(
            f"Added {kind.value} item to cart",
            extra={
                "hashed_user_id": hash_identifier(user_id),
                "merged": line is not None,
                "quantity": quantity,
            },
        )
        return await self.render(cart)

    async def decrement_item(
        self,
        user_id: str,
        line_id: Optional[str] = None,
        item_id: Optional[str] = None,
        selected_size: str = "",
        selected_color: str = "",
    ) -> CartView:
        """
        Take one off a cart line, removing the line when it reaches zero.

        line_id wins when both identifiers are given; otherwise the line is
        matched on item_id plus variant.
        """
        line_id = normalize_item_id(line_id)
        item_id = normalize_item_id(item_id)
        if line_id is None and item_id is None:
            raise InvalidRequestError("line_id or item_id is required")

        cart = await self.store.find(user_id)
        if cart is None:
            raise CartNotFoundError(user_id)

        if line_id:
            index = next(
                (i for i, entry in enumerate(cart.lines) if entry.line_id == line_id), -1
            )
        else:
            index = next(
                (i for i, entry in enumerate(cart.lines)
                 if entry.matches(item_id, selected_size, selected_color)),
                -1,
            )
        if index == -1:
            raise ItemNotInCartError(line_id or item_id)

        line = cart.lines[index]
        remaining = line.quantity - 1
        if remaining <= 0:
            del cart.lines[index]
        else:
            line.quantity = remaining

        await self.store.save(cart)
        logger.info(
            "Decremented cart line",
            extra={"hashed_user_id": hash_identifier(user_id), "removed": remaining <= 0},
        )
        return await self.render(cart)

    async def get_cart(self, user_id: str) -> CartView:
        """Get cart contents (empty view if the user has no cart)"""
        cart = await self.store.load(user_id)
        return await self.render(cart)

    async def render(self, cart: Cart) -> CartView:
        """
        Build the response view of a cart.

        Only Product lines get live catalog fields; top seller and dress
        style lines are shown from their snapshots. The stored document is
        not modified.
        """
        products = self.catalog.repository(SourceKind.PRODUCT)
        lines = []
        total_items = 0
        total_price = Decimal("0")

        for line in cart.lines:
            view = CartLineView(**line.model_dump())
            if line.source_kind == SourceKind.PRODUCT:
                product = await products.find_by_id(line.item_ref)
                if product is not None:
                    view.product = ProductSummary(
                        id=product.id,
                        name=product.name,
                        price=product.price,
                        image=product.image,
                    )
            lines.append(view)
            total_items += line.quantity
            total_price += line.price_snapshot * line.quantity

        return CartView(
            owner=cart.owner,
            lines=lines,
            total_items=total_items,
            total_price=total_price,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
        )
