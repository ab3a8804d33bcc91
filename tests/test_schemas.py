import pytest
from pydantic import ValidationError

from storefront_cache.codec import JsonCodec
from storefront_cache.schemas import (
    CachedCart,
    CachedUser,
    CreateAddress,
    CreateCart,
    MediaItem,
)

from conftest import make_address, make_cart, make_media_item, make_product, make_user


def test_cached_cart_survives_the_codec():
    codec = JsonCodec()
    cart = CachedCart.model_validate(make_cart())

    assert CachedCart.model_validate(codec.decode(codec.encode(cart))) == cart


def test_extra_columns_are_dropped():
    row = make_cart()
    row["internal_note"] = "not cached"

    cart = CachedCart.model_validate(row)

    assert "internal_note" not in cart.model_dump()


def test_unpurchasable_product():
    cart = CachedCart.model_validate(
        make_cart(product=make_product(verification_status="pending"))
    )

    assert not cart.product.is_purchasable


def test_media_url_needs_scheme():
    with pytest.raises(ValidationError):
        MediaItem.model_validate(make_media_item(url="cdn.example.com/a.png"))


def test_blank_variant_is_none():
    body = CreateCart(user_id="user_1", product_id=make_product()["id"], variant_id="", quantity=1)

    assert body.variant_id is None


def test_quantity_must_be_positive():
    with pytest.raises(ValidationError):
        CreateCart(user_id="user_1", product_id=make_product()["id"], quantity=0)


@pytest.mark.parametrize("full_name", ["Ada", "A Lovelace", "Ada L"])
def test_address_needs_first_and_last_name(full_name):
    values = make_address(full_name=full_name)
    with pytest.raises(ValidationError):
        CreateAddress.model_validate(values)


def test_user_embeds_addresses():
    user = CachedUser.model_validate(make_user(addresses=[make_address(is_primary=True)]))

    assert user.addresses[0].is_primary


def test_codec_rejects_garbage():
    codec = JsonCodec()

    assert codec.decode(None) is None
    assert codec.decode("") is None
    assert codec.decode("{broken") is None
