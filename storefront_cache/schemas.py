"""
Pydantic models for cached entities and request bodies.

A model is the single source of truth for what a cached value may look like:
rows rebuilt from Postgres and values read back from Redis go through the
same ``model_validate`` call. Fields a family does not cache are simply not
declared, so extra columns on a joined row are dropped on validation.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Literal, NamedTuple, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, EmailStr, Field, field_validator


def _empty_to_none(value):
    return None if value == "" else value


NullableStr = Annotated[Optional[str], BeforeValidator(_empty_to_none)]
NonNegativeInt = Annotated[int, Field(ge=0)]

SiteRole = Literal["user", "mod", "admin"]
VerificationStatus = Literal["idle", "pending", "approved", "rejected"]
AddressType = Literal["home", "work", "other"]


# Identity tuples for composite-key families
class CartKey(NamedTuple):
    user_id: str
    product_id: str
    variant_id: Optional[str] = None


class WishlistKey(NamedTuple):
    user_id: str
    product_id: str


# Media items

class MediaItem(BaseModel):
    id: UUID
    uploader_id: Optional[str] = None
    url: str = Field(min_length=1)
    type: str = Field(min_length=1)
    name: str = Field(min_length=1)
    alt: NullableStr = None
    size: NonNegativeInt
    created_at: datetime
    updated_at: datetime

    @field_validator("url")
    @classmethod
    def url_has_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Media URL is invalid")
        return v


class CreateMediaItem(BaseModel):
    uploader_id: Optional[str] = None
    url: str
    type: str = Field(min_length=1)
    name: str = Field(min_length=1)
    alt: NullableStr = None
    size: NonNegativeInt


class UpdateMediaItem(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    alt: NullableStr = None


# Category tree

class Category(BaseModel):
    id: UUID
    name: str = Field(min_length=3)
    slug: str = Field(min_length=3)
    description: NullableStr = None
    created_at: datetime
    updated_at: datetime


class CachedCategory(Category):
    subcategories: int


class Subcategory(BaseModel):
    id: UUID
    category_id: UUID
    name: str = Field(min_length=3)
    slug: str = Field(min_length=3)
    description: NullableStr = None
    created_at: datetime
    updated_at: datetime


class CachedSubcategory(Subcategory):
    product_types: int


class ProductType(BaseModel):
    id: UUID
    category_id: UUID
    subcategory_id: UUID
    name: str = Field(min_length=3)
    slug: str = Field(min_length=3)
    description: NullableStr = None
    created_at: datetime
    updated_at: datetime


CachedProductType = ProductType


class CreateCategory(BaseModel):
    name: str = Field(min_length=3)
    description: NullableStr = None


class UpdateCategory(BaseModel):
    name: Optional[str] = Field(default=None, min_length=3)
    description: NullableStr = None


class CreateSubcategory(BaseModel):
    category_id: UUID
    name: str = Field(min_length=3)
    description: NullableStr = None


# Products, as embedded in cart and wishlist lines

class ProductMedia(BaseModel):
    id: UUID
    position: NonNegativeInt


class EnrichedProductMedia(ProductMedia):
    media_item: Optional[MediaItem] = None


class ProductOptionValue(BaseModel):
    id: UUID
    name: str = Field(min_length=1)
    position: NonNegativeInt


class ProductOption(BaseModel):
    id: UUID
    product_id: UUID
    name: str = Field(min_length=1)
    values: List[ProductOptionValue]
    position: NonNegativeInt
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class EnrichedProductVariant(BaseModel):
    id: UUID
    product_id: UUID
    image: Optional[UUID] = None
    media_item: Optional[MediaItem] = None
    combinations: Dict[str, str]
    price: NonNegativeInt
    compare_at_price: Optional[NonNegativeInt] = None
    quantity: NonNegativeInt
    native_sku: str = Field(min_length=3)
    sku: NullableStr = None
    is_deleted: bool

    @field_validator("image", mode="before")
    @classmethod
    def blank_image(cls, v):
        return _empty_to_none(v)


class _ProductSummary(BaseModel):
    id: UUID
    title: str = Field(min_length=3)
    slug: str = Field(min_length=3)
    price: Optional[NonNegativeInt] = None
    compare_at_price: Optional[NonNegativeInt] = None
    native_sku: NullableStr = None
    sku: NullableStr = None
    quantity: Optional[NonNegativeInt] = None
    is_active: bool
    is_published: bool
    is_available: bool
    is_deleted: bool
    verification_status: VerificationStatus
    media: List[EnrichedProductMedia] = []
    variants: List[EnrichedProductVariant] = []
    options: List[ProductOption] = []

    @property
    def is_purchasable(self) -> bool:
        return (
            self.is_available
            and self.is_active
            and self.is_published
            and not self.is_deleted
            and self.verification_status == "approved"
        )


class CartProduct(_ProductSummary):
    category_id: UUID
    subcategory_id: UUID
    product_type_id: UUID


class WishlistProduct(_ProductSummary):
    product_has_variants: bool


# Carts

class CartVariant(BaseModel):
    id: UUID
    native_sku: str
    sku: NullableStr = None
    quantity: NonNegativeInt
    is_deleted: bool


class Cart(BaseModel):
    id: UUID
    user_id: str = Field(min_length=1)
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)
    status: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("variant_id", mode="before")
    @classmethod
    def blank_variant(cls, v):
        return _empty_to_none(v)


class CachedCart(Cart):
    product: CartProduct
    variant: Optional[CartVariant] = None

    @property
    def key(self) -> CartKey:
        return CartKey(
            self.user_id,
            str(self.product_id),
            str(self.variant_id) if self.variant_id else None,
        )


class CreateCart(BaseModel):
    user_id: str = Field(min_length=1)
    product_id: UUID
    variant_id: Optional[UUID] = None
    quantity: int = Field(gt=0)

    @field_validator("variant_id", mode="before")
    @classmethod
    def blank_variant(cls, v):
        return _empty_to_none(v)


class UpdateCart(BaseModel):
    user_id: str = Field(min_length=1)
    product_id: Optional[UUID] = None
    variant_id: Optional[UUID] = None
    quantity: Optional[int] = Field(default=None, gt=0)
    status: Optional[bool] = None
    action: Optional[Literal["move_to_wishlist"]] = None

    @field_validator("variant_id", mode="before")
    @classmethod
    def blank_variant(cls, v):
        return _empty_to_none(v)


# Wishlists

class Wishlist(BaseModel):
    id: UUID
    user_id: str = Field(min_length=1)
    product_id: UUID
    created_at: datetime
    updated_at: datetime


class CachedWishlist(Wishlist):
    product: WishlistProduct

    @property
    def key(self) -> WishlistKey:
        return WishlistKey(self.user_id, str(self.product_id))


class CreateWishlist(BaseModel):
    user_id: str = Field(min_length=1)
    product_id: UUID


# Users and addresses

PHONE_PATTERN = r"^\+?\d{0,3}?\d{0,2}?\d{10}$"


class Address(BaseModel):
    id: UUID
    alias: str = Field(min_length=1)
    alias_slug: str = Field(min_length=1)
    full_name: str = Field(min_length=5)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    phone: str = Field(pattern=PHONE_PATTERN)
    type: AddressType
    is_primary: bool


class CreateAddress(BaseModel):
    alias: str = Field(min_length=1)
    full_name: str = Field(min_length=5)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip: str = Field(min_length=1)
    phone: str = Field(pattern=PHONE_PATTERN)
    type: AddressType
    is_primary: bool = False

    @field_validator("full_name")
    @classmethod
    def first_and_last_name(cls, v: str) -> str:
        parts = v.split(" ")
        if len(parts) < 2 or any(len(p) < 2 for p in parts):
            raise ValueError(
                "Full name must contain first and last name, each at least 2 characters long"
            )
        return v


UpdateAddress = CreateAddress


class User(BaseModel):
    id: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr
    phone: Optional[str] = Field(default=None, pattern=PHONE_PATTERN)
    avatar_url: Optional[str] = None
    is_email_verified: bool
    is_phone_verified: bool
    role: SiteRole
    created_at: datetime
    updated_at: datetime


class CachedUser(User):
    addresses: List[Address] = []


# Stats

class CacheStats(BaseModel):
    hits: int
    misses: int
    rebuilds: int
    invalid: int
    hit_rate: float
