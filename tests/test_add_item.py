import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from cartqueue.application.cart.add_item import AddItemToCartUseCase
from cartqueue.domain.cart.commands import (
    CONTENT_TYPE,
    ENQUEUED_AT_HEADER,
    IDEMPOTENCY_HEADER,
    MAX_QUANTITY,
    CartMutationCommand,
)
from cartqueue.domain.cart.errors import CartServiceError, ErrorKind
from cartqueue.domain.cart.ports import ProductCatalog
from cartqueue.infrastructure.errors import StoreError

FIXED_NOW = datetime(2024, 5, 1, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def use_case(catalog, publisher):
    return AddItemToCartUseCase(catalog, publisher, clock=lambda: FIXED_NOW)


class TestAddItemToCart:
    """Producer: validate, publish, answer "accepted" """

    @pytest.mark.parametrize("quantity", [0, -1, -100])
    def test_non_positive_quantity_is_rejected_without_publishing(self, use_case, publisher, add_product, quantity):
        product_id = add_product(stock=10)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, product_id, quantity)

        assert exc_info.value.kind is ErrorKind.INVALID_QUANTITY
        assert publisher.messages == []

    def test_quantity_is_checked_before_product_lookup(self, publisher):
        products = MagicMock(spec=ProductCatalog)
        use_case = AddItemToCartUseCase(products, publisher)

        with pytest.raises(CartServiceError):
            use_case.execute(1, 5, 0)

        products.get_product.assert_not_called()

    @pytest.mark.parametrize("user_id, product_id", [(-1, 5), (1, -5), (2**63, 5)])
    def test_out_of_range_ids_are_rejected_before_lookup(self, publisher, user_id, product_id):
        products = MagicMock(spec=ProductCatalog)
        use_case = AddItemToCartUseCase(products, publisher)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(user_id, product_id, 1)

        assert exc_info.value.kind is ErrorKind.INVALID_REQUEST
        assert exc_info.value.kind.http_status == 400
        products.get_product.assert_not_called()
        assert publisher.messages == []

    def test_quantity_above_column_range_is_invalid(self, use_case, publisher, add_product):
        product_id = add_product(stock=10)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, product_id, MAX_QUANTITY + 1)

        assert exc_info.value.kind is ErrorKind.INVALID_QUANTITY
        assert publisher.messages == []

    def test_unknown_product_is_rejected(self, use_case, publisher):
        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, 999, 1)

        assert exc_info.value.kind is ErrorKind.PRODUCT_NOT_FOUND
        assert publisher.messages == []

    def test_soft_deleted_product_counts_as_missing(self, use_case, publisher, add_product):
        product_id = add_product(deleted=True)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, product_id, 1)

        assert exc_info.value.kind is ErrorKind.PRODUCT_NOT_FOUND

    @pytest.mark.parametrize("stock, quantity", [(1, 2), (0, 1), (9, 10)])
    def test_quantity_above_stock_is_rejected_without_publishing(
        self, use_case, publisher, add_product, stock, quantity
    ):
        product_id = add_product(stock=stock)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, product_id, quantity)

        assert exc_info.value.kind is ErrorKind.INSUFFICIENT_STOCK
        assert publisher.messages == []

    def test_quantity_equal_to_stock_is_accepted(self, use_case, publisher, add_product):
        product_id = add_product(stock=3)

        use_case.execute(1, product_id, 3)

        assert len(publisher.messages) == 1

    def test_publishes_command_with_headers(self, use_case, publisher, add_product):
        product_id = add_product(stock=10)

        receipt = use_case.execute(1, product_id, 2)

        body, content_type, headers = publisher.messages[0]
        assert content_type == CONTENT_TYPE
        assert json.loads(body) == {"user_id": 1, "product_id": product_id, "quantity": 2}
        assert headers[ENQUEUED_AT_HEADER] == FIXED_NOW.isoformat()

        expected_key = CartMutationCommand(user_id=1, product_id=product_id, quantity=2).idempotency_key(FIXED_NOW)
        assert headers[IDEMPOTENCY_HEADER] == expected_key
        assert receipt.status == "accepted"
        assert receipt.idempotency_key == expected_key

    def test_broker_failure_is_publish_failed(self, use_case, publisher, add_product):
        product_id = add_product(stock=10)
        publisher.failing = True

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, product_id, 2)

        assert exc_info.value.kind is ErrorKind.PUBLISH_FAILED
        assert exc_info.value.is_transient

    def test_catalog_failure_is_transient(self, publisher):
        products = MagicMock(spec=ProductCatalog)
        products.get_product.side_effect = StoreError("connection refused")
        use_case = AddItemToCartUseCase(products, publisher)

        with pytest.raises(CartServiceError) as exc_info:
            use_case.execute(1, 5, 1)

        assert exc_info.value.kind is ErrorKind.STORE_UNAVAILABLE
        assert publisher.messages == []

    def test_never_writes_to_store(self, use_case, store, add_product):
        product_id = add_product(stock=10)

        use_case.execute(1, product_id, 2)

        assert store.get_cart_items_by_user(1) == []
