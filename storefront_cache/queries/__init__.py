"""Postgres query layer: the authoritative source every cache rebuilds from."""

import asyncpg

from .address import AddressQuery
from .cart import CartQuery
from .category import CategoryQuery, ProductTypeQuery, SubcategoryQuery
from .media_item import MediaItemQuery
from .product import ProductQuery
from .user import UserQuery
from .wishlist import WishlistQuery


class Queries:
    def __init__(self, db_pool: asyncpg.Pool):
        self.db = db_pool
        self.product = ProductQuery(db_pool)
        self.category = CategoryQuery(db_pool)
        self.subcategory = SubcategoryQuery(db_pool)
        self.product_type = ProductTypeQuery(db_pool)
        self.cart = CartQuery(db_pool, self.product)
        self.wishlist = WishlistQuery(db_pool, self.product)
        self.media_item = MediaItemQuery(db_pool)
        self.user = UserQuery(db_pool)
        self.address = AddressQuery(db_pool)


__all__ = [
    "Queries",
    "AddressQuery",
    "CartQuery",
    "CategoryQuery",
    "MediaItemQuery",
    "ProductQuery",
    "ProductTypeQuery",
    "SubcategoryQuery",
    "UserQuery",
    "WishlistQuery",
]
