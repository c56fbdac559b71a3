"""
Catalog repositories for products, top sellers and dress styles, and the
lookup that resolves an item id across all three.
"""
import logging
import re
import uuid
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from storefront.exceptions import InvalidRequestError, ItemNotFoundError
from storefront.models import (
    CatalogItem,
    CatalogItemCreate,
    CatalogItemUpdate,
    SourceKind,
    utcnow,
)
from storefront.redis_client import RedisClient

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH: Dict[SourceKind, int] = {
    SourceKind.PRODUCT: 100,
    SourceKind.TOP_SELLER: 50,
    SourceKind.DRESS_STYLE: 50,
}

# Product wins when an id exists in more than one collection
RESOLUTION_ORDER: Tuple[SourceKind, ...] = (
    SourceKind.PRODUCT,
    SourceKind.TOP_SELLER,
    SourceKind.DRESS_STYLE,
)

# Catalogs whose names must be unique, compared case-insensitively
UNIQUE_NAME_KINDS: FrozenSet[SourceKind] = frozenset(
    {SourceKind.TOP_SELLER, SourceKind.DRESS_STYLE}
)


def _words(text: str) -> Set[str]:
    return set(re.findall(r"\w+", text.lower()))


class CatalogRepository:
    """Redis-backed store for one catalog collection"""

    def __init__(self, redis: RedisClient, kind: SourceKind):
        self.redis = redis
        self.kind = kind

    def _item_key(self, item_id: str) -> str:
        return f"catalog:{self.kind.value}:{item_id}"

    def _index_key(self) -> str:
        return f"catalog:{self.kind.value}:index"

    def _check_name(self, name: str) -> str:
        name = name.strip()
        if not name:
            raise InvalidRequestError(f"{self.kind.value} name is required")
        limit = NAME_MAX_LENGTH[self.kind]
        if len(name) > limit:
            raise InvalidRequestError(
                f"{self.kind.value} name cannot exceed {limit} characters"
            )
        return name

    def _check_description(self, description: str) -> str:
        description = description.strip()
        if not description:
            raise InvalidRequestError(f"{self.kind.value} description is required")
        return description

    async def _check_unique_name(self, name: str, exclude_id: Optional[str] = None) -> None:
        if self.kind not in UNIQUE_NAME_KINDS:
            return
        for other in await self.list_all():
            if other.id != exclude_id and other.name.lower() == name.lower():
                raise InvalidRequestError(
                    f"{self.kind.value} name already exists: {name}"
                )

    async def _check_position(self, position: int, exclude_id: Optional[str] = None) -> None:
        if self.kind is not SourceKind.TOP_SELLER:
            raise InvalidRequestError(f"{self.kind.value} items have no position")
        for other in await self.list_all():
            if other.id != exclude_id and other.position == position:
                raise InvalidRequestError(f"Position {position} is already taken")

    async def find_by_id(self, item_id: str) -> Optional[CatalogItem]:
        raw = await self.redis.get(self._item_key(item_id))
        if raw is None:
            return None
        return CatalogItem.model_validate_json(raw)

    async def get(self, item_id: str) -> CatalogItem:
        item = await self.find_by_id(item_id)
        if item is None:
            raise ItemNotFoundError(item_id, self.kind.value)
        return item

    async def save(self, item: CatalogItem) -> None:
        """Write an item and index it by creation time"""
        await self.redis.set(self._item_key(item.id), item.model_dump_json())
        await self.redis.zadd(self._index_key(), {item.id: item.created_at.timestamp()})

    async def create(self, data: CatalogItemCreate) -> CatalogItem:
        name = self._check_name(data.name)
        await self._check_unique_name(name)
        if data.position is not None:
            await self._check_position(data.position)

        item = CatalogItem(
            id=uuid.uuid4().hex,
            name=name,
            description=self._check_description(data.description),
            price=data.price,
            image=data.image,
            is_active=data.is_active,
            position=data.position,
        )
        await self.save(item)
        logger.info(f"Created {self.kind.value} {item.id}")
        return item

    async def list_all(
        self, search: Optional[str] = None, active: Optional[bool] = None
    ) -> List[CatalogItem]:
        """
        All items, newest first.

        search keeps items whose name or description shares any word with
        the search text; active keeps items with that listing status.
        """
        ids = await self.redis.zrevrange(self._index_key(), 0, -1)
        raws = await self.redis.mget([self._item_key(i) for i in ids])
        items = [CatalogItem.model_validate_json(raw) for raw in raws if raw is not None]

        if active is not None:
            items = [item for item in items if item.is_active == active]
        terms = _words(search or "")
        if terms:
            items = [
                item for item in items
                if terms & (_words(item.name) | _words(item.description))
            ]
        return items

    async def update(self, item_id: str, data: CatalogItemUpdate) -> CatalogItem:
        item = await self.get(item_id)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = self._check_name(changes["name"])
            await self._check_unique_name(changes["name"], exclude_id=item_id)
        if "description" in changes:
            changes["description"] = self._check_description(changes["description"])
        if "position" in changes:
            await self._check_position(changes["position"], exclude_id=item_id)
        updated = CatalogItem.model_validate(
            {**item.model_dump(), **changes, "updated_at": utcnow()}
        )
        await self.save(updated)
        logger.info(f"Updated {self.kind.value} {item_id}")
        return updated

    async def toggle_status(self, item_id: str) -> CatalogItem:
        """Flip whether the item is listed"""
        item = await self.get(item_id)
        item.is_active = not item.is_active
        item.updated_at = utcnow()
        await self.save(item)
        logger.info(f"Set {self.kind.value} {item_id} active={item.is_active}")
        return item

    async def set_position(self, item_id: str, position: int) -> CatalogItem:
        item = await self.get(item_id)
        await self._check_position(position, exclude_id=item_id)
        item.position = position
        item.updated_at = utcnow()
        await self.save(item)
        logger.info(f"Moved {self.kind.value} {item_id} to position {position}")
        return item

    async def delete(self, item_id: str) -> CatalogItem:
        item = await self.get(item_id)
        await self.redis.delete(self._item_key(item_id))
        await self.redis.zrem(self._index_key(), item_id)
        logger.info(f"Deleted {self.kind.value} {item_id}")
        return item


class CatalogLookup:
    """Resolves an item id against every catalog in a fixed order"""

    def __init__(self, redis: RedisClient):
        self.repositories = {
            kind: CatalogRepository(redis, kind) for kind in RESOLUTION_ORDER
        }

    def repository(self, kind: SourceKind) -> CatalogRepository:
        return self.repositories[kind]

    async def resolve(self, item_id: str) -> Optional[Tuple[CatalogItem, SourceKind]]:
        """
        Find an item in Product, then TopSeller, then DressStyle.

        Returns:
            (item, kind) for the first match, or None if no catalog has it
        """
        for kind in RESOLUTION_ORDER:
            item = await self.repositories[kind].find_by_id(item_id)
            if item is not None:
                return item, kind
        return None
