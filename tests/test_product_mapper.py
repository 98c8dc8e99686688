"""
Tests for mapping external product payloads to the internal Product.
"""

import pytest

from catalog_sync.core.errors import MappingError
from catalog_sync.mapping.product_mapper import (
    is_valid_url,
    map_external_to_internal,
    map_shopify_product,
    map_woocommerce_product,
    parse_price,
    parse_stock,
    validate_image_url,
)
from conftest import shopify_product, woocommerce_product


class TestParsePrice:
    @pytest.mark.parametrize("value, expected", [
        ("19.99", 19.99),
        (5, 5.0),
        (None, 0.0),
        ("", 0.0),
        ("-3", 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
    ])
    def test_coercion(self, value, expected):
        assert parse_price(value) == expected

    @pytest.mark.parametrize("value", ["abc", True, {"amount": 1}])
    def test_garbage_is_rejected(self, value):
        with pytest.raises(MappingError):
            parse_price(value, "p1")


class TestParseStock:
    @pytest.mark.parametrize("value, expected", [
        (7, 7),
        ("12", 12),
        ("3.7", 3),
        (None, 0),
        ("abc", 0),
        (-2, 0),
        (float("nan"), 0),
        (True, 0),
    ])
    def test_coercion(self, value, expected):
        assert parse_stock(value) == expected


class TestUrls:
    def test_is_valid_url(self):
        assert is_valid_url("https://cdn.example.com/a.jpg")
        assert is_valid_url("http://example.com")
        assert not is_valid_url("ftp://example.com/a.jpg")
        assert not is_valid_url("/relative/a.jpg")

    def test_invalid_image_url_becomes_empty(self):
        assert validate_image_url("not a url") == ""
        assert validate_image_url(None) == ""
        assert validate_image_url(" https://cdn.example.com/a.jpg ") == "https://cdn.example.com/a.jpg"


class TestShopifyMapping:
    def test_maps_first_variant_and_image(self):
        product = map_shopify_product(shopify_product(42, title="Shoes", price="49.50", stock=8), "test-store.myshopify.com")

        assert product.id == "42"
        assert product.name == "Shoes"
        assert product.description == "<p>Description 42</p>"
        assert product.price == 49.5
        assert product.stock == 8
        assert product.image_url == "https://cdn.shopify.com/42.jpg"
        assert product.product_url == "https://test-store.myshopify.com/products/product-42"
        assert product.description_extra == ""

    def test_missing_variants_and_image(self):
        raw = {"id": 1, "title": "Bare"}
        product = map_shopify_product(raw, "test-store.myshopify.com")
        assert product.price == 0.0
        assert product.stock == 0
        assert product.image_url == ""
        assert product.product_url == ""

    def test_missing_id_or_title_is_rejected(self):
        with pytest.raises(MappingError):
            map_shopify_product({"title": "No id"})
        with pytest.raises(MappingError):
            map_shopify_product({"id": 1, "title": "  "})


class TestWooCommerceMapping:
    def test_maps_fields(self):
        product = map_woocommerce_product(woocommerce_product(7, name="Mug", price="12.00", stock=None))

        assert product.id == "7"
        assert product.name == "Mug"
        assert product.price == 12.0
        assert product.stock == 0
        assert product.image_url == "https://shop.example.com/img/7.jpg"
        assert product.product_url == "https://shop.example.com/product/7"

    def test_short_description_is_not_mapped(self):
        product = map_woocommerce_product(woocommerce_product(7))
        assert product.description_extra == ""

    def test_invalid_permalink_dropped(self):
        raw = woocommerce_product(7)
        raw["permalink"] = "product/7"
        assert map_woocommerce_product(raw).product_url == ""


class TestDispatch:
    def test_dispatches_on_source(self):
        assert map_external_to_internal(shopify_product(1), "shopify", "s.myshopify.com").id == "1"
        assert map_external_to_internal(woocommerce_product(2), "woocommerce").id == "2"

    def test_unknown_source(self):
        with pytest.raises(MappingError):
            map_external_to_internal({"id": 1}, "magento")
