"""Tests for ProductService: SKU rules and the referenced-product freeze."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from distribution_kernel.exceptions import (
    DuplicateSkuError,
    InvalidSkuError,
    ProductNotFoundError,
    ProductReferencedError,
    ValidationError,
)


class TestCreateProduct:

    def test_create_with_defaults(self, product_service, test_actor_id):
        product = product_service.create_product("RED-GINSENG-01", "Red Ginseng", test_actor_id)
        assert product.unit == "EA"
        assert product.shelf_life_days == 0
        assert product.base_cost is None
        assert product.is_active

    @pytest.mark.parametrize("sku", ["", "lower-case", "HAS SPACE", "UNDER_SCORE", "Ä-1"])
    def test_invalid_sku(self, product_service, test_actor_id, sku):
        with pytest.raises(InvalidSkuError):
            product_service.create_product(sku, "Bad", test_actor_id)

    def test_duplicate_sku(self, product_service, test_actor_id):
        product_service.create_product("SKU-1", "First", test_actor_id)
        with pytest.raises(DuplicateSkuError) as exc_info:
            product_service.create_product("SKU-1", "Second", test_actor_id)
        assert exc_info.value.sku == "SKU-1"

    def test_negative_shelf_life(self, product_service, test_actor_id):
        with pytest.raises(ValidationError):
            product_service.create_product("SKU-2", "Bad", test_actor_id, shelf_life_days=-1)

    def test_negative_base_cost(self, product_service, test_actor_id):
        with pytest.raises(ValidationError):
            product_service.create_product(
                "SKU-3", "Bad", test_actor_id, base_cost=Decimal("-1")
            )

    def test_unknown_product(self, product_service):
        with pytest.raises(ProductNotFoundError):
            product_service.get(uuid4())


class TestUpdateProduct:

    def test_unreferenced_product_accepts_any_edit(self, product_service, product, test_actor_id):
        updated = product_service.update_product(
            product.id, test_actor_id, unit="BOX", shelf_life_days=30, name="Renamed"
        )
        assert updated.unit == "BOX"
        assert updated.shelf_life_days == 30
        assert updated.name == "Renamed"
        assert updated.updated_by_id == test_actor_id

    def test_sku_is_immutable(self, product_service, product, test_actor_id):
        with pytest.raises(ValidationError):
            product_service.update_product(product.id, test_actor_id, sku="OTHER-SKU")

    def test_same_sku_is_a_no_op(self, product_service, product, test_actor_id):
        updated = product_service.update_product(
            product.id, test_actor_id, sku=product.sku, name="Same SKU"
        )
        assert updated.sku == "GINSENG-500"

    def test_unknown_field(self, product_service, product, test_actor_id):
        with pytest.raises(ValidationError, match="unknown product fields"):
            product_service.update_product(product.id, test_actor_id, colour="red")

    def test_stocked_product_freezes_unit(
        self, product_service, product, network, receive_stock, test_actor_id
    ):
        receive_stock(network.hq.id, product.id, "LOT-1", 10, date(2026, 1, 1))
        assert product_service.is_referenced(product.id)
        with pytest.raises(ProductReferencedError) as exc_info:
            product_service.update_product(product.id, test_actor_id, unit="BOX")
        assert exc_info.value.field == "unit"
        with pytest.raises(ProductReferencedError):
            product_service.update_product(product.id, test_actor_id, shelf_life_days=1)

    def test_priced_product_freezes_shelf_life(
        self, product_service, pricing_service, product, network, test_actor_id
    ):
        pricing_service.configure_branch_price(
            product.id, network.kr_branch.id, Decimal("20"), Decimal("10"), test_actor_id
        )
        assert product_service.is_referenced(product.id)
        with pytest.raises(ProductReferencedError):
            product_service.update_product(product.id, test_actor_id, shelf_life_days=10)

    def test_referenced_product_still_renames(
        self, product_service, product, network, receive_stock, test_actor_id
    ):
        receive_stock(network.hq.id, product.id, "LOT-1", 10, date(2026, 1, 1))
        updated = product_service.update_product(
            product.id,
            test_actor_id,
            name="Ginseng 500g",
            base_cost=Decimal("11000"),
            unit=product.unit,
        )
        assert updated.name == "Ginseng 500g"
        assert updated.base_cost == Decimal("11000")
