"""
Pydantic models for catalog items, carts, requests, and responses.
"""
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceKind(str, Enum):
    """Catalog a cart line's item came from"""
    PRODUCT = "product"
    TOP_SELLER = "topseller"
    DRESS_STYLE = "dressstyle"


def _round_price(v: Decimal) -> Decimal:
    try:
        return Decimal(v).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError("price is out of range")


MAX_PRICE = Decimal("1000000000")
MAX_POSITION = 10000


class CatalogItem(BaseModel):
    """Catalog item as stored in any of the three collections"""
    id: str = Field(..., description="Item identifier")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="Item description")
    price: Decimal = Field(Decimal("0"), ge=0, description="Current price")
    image: str = Field("", description="Image URL")
    is_active: bool = Field(True, description="Whether the item is listed")
    position: Optional[int] = Field(None, ge=0, description="Display slot, top sellers only")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("price")
    @classmethod
    def round_price(cls, v: Decimal) -> Decimal:
        return _round_price(v)


class CatalogItemCreate(BaseModel):
    """Request model for creating a catalog item"""
    name: str = Field(..., description="Display name")
    description: str = Field(..., description="Item description")
    price: Decimal = Field(Decimal("0"), ge=0, le=MAX_PRICE, description="Price")
    image: str = Field("", description="Image URL")
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    position: Optional[int] = Field(None, ge=0, le=MAX_POSITION)


class CatalogItemUpdate(BaseModel):
    """Request model for partial catalog updates"""
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, le=MAX_PRICE)
    image: Optional[str] = None
    is_active: Optional[bool] = Field(None, validation_alias=AliasChoices("is_active", "isActive"))
    position: Optional[int] = Field(None, ge=0, le=MAX_POSITION)


class PositionUpdate(BaseModel):
    """Request model for moving a top seller"""
    position: int = Field(..., ge=0, le=MAX_POSITION)


class CartLine(BaseModel):
    """One merged item+variant entry in a cart"""
    line_id: str = Field(..., description="Line identifier, immutable")
    item_ref: str = Field(..., description="Catalog item identifier")
    source_kind: SourceKind = Field(..., description="Catalog the item came from")
    quantity: int = Field(..., ge=1, description="Item quantity")
    selected_size: str = Field("", description="Selected size, empty for none")
    selected_color: str = Field("", description="Selected color, empty for none")
    price_snapshot: Decimal = Field(Decimal("0"), description="Price when added or last touched")
    name_snapshot: str = Field("", description="Name when added or last touched")
    image_snapshot: str = Field("", description="Image when added or last touched")
    added_at: datetime = Field(default_factory=utcnow)

    def matches(self, item_ref: str, selected_size: str, selected_color: str) -> bool:
        return (
            self.item_ref == item_ref
            and self.selected_size == selected_size
            and self.selected_color == selected_color
        )


class Cart(BaseModel):
    """Cart document, one per user"""
    owner: str = Field(..., description="User identifier")
    lines: List[CartLine] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProductSummary(BaseModel):
    """Live product fields attached to Product-sourced lines"""
    id: str
    name: str
    price: Decimal
    image: str = ""


class CartLineView(CartLine):
    product: Optional[ProductSummary] = None


class CartView(BaseModel):
    """Response model for cart retrieval"""
    owner: str
    lines: List[CartLineView] = Field(default_factory=list)
    total_items: int = Field(0, description="Sum of line quantities")
    total_price: Decimal = Field(Decimal("0"), description="Sum of snapshot price times quantity")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _blank_to_empty(v: Any) -> str:
    return "" if v is None else str(v)


def normalize_item_id(v: Any) -> Optional[str]:
    """Identifiers are opaque: numbers become text, surrounding blanks go, blank means absent"""
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class AddItemRequest(BaseModel):
    """Request model for adding an item to the cart"""
    item_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("item_id", "itemId", "productId")
    )
    # Left untyped so the service can coerce bad values to 1 instead of rejecting them
    quantity: Any = 1
    selected_size: str = Field("", validation_alias=AliasChoices("selected_size", "selectedSize"))
    selected_color: str = Field("", validation_alias=AliasChoices("selected_color", "selectedColor"))

    @field_validator("selected_size", "selected_color", mode="before")
    @classmethod
    def empty_variant(cls, v: Any) -> str:
        return _blank_to_empty(v)

    @field_validator("item_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_item_id(v)


class DecrementItemRequest(BaseModel):
    """Request model for decrementing a cart line"""
    line_id: Optional[str] = Field(None, validation_alias=AliasChoices("line_id", "lineId"))
    item_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("item_id", "itemId", "productId")
    )
    selected_size: str = Field("", validation_alias=AliasChoices("selected_size", "selectedSize"))
    selected_color: str = Field("", validation_alias=AliasChoices("selected_color", "selectedColor"))

    @field_validator("selected_size", "selected_color", mode="before")
    @classmethod
    def empty_variant(cls, v: Any) -> str:
        return _blank_to_empty(v)

    @field_validator("line_id", "item_id", mode="before")
    @classmethod
    def normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_item_id(v)
