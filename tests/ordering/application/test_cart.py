"""Application tests for the shopping cart."""

import pytest

from shared.exceptions import InsufficientStock, ObjectNotFoundError, ValidationError


class TestCart:
    def test_cart_is_created_on_first_access(self, services):
        cart = services.carts.get_cart("cust-001")
        assert cart.customer_id == "cust-001"
        assert cart.items == []

    def test_plain_lines_are_merged(self, fill_cart, make_listing):
        listing = make_listing()
        fill_cart("cust-001", listing, quantity=1)
        cart = fill_cart("cust-001", listing, quantity=2)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 3

    def test_customized_lines_stay_separate(self, fill_cart, make_listing):
        listing = make_listing()
        fill_cart("cust-001", listing, quantity=1)
        cart = fill_cart("cust-001", listing, customizations=[{"type": "AUTOGRAPH", "price": "20"}])
        assert len(cart.items) == 2

    def test_courtesy_stock_check(self, fill_cart, make_listing):
        listing = make_listing(stock=2)
        fill_cart("cust-001", listing, quantity=2)
        with pytest.raises(InsufficientStock):
            fill_cart("cust-001", listing, quantity=1)

    def test_unknown_listing(self, services):
        with pytest.raises(ObjectNotFoundError):
            services.carts.add_item("cust-001", "missing")

    def test_unknown_customization_type(self, fill_cart, make_listing):
        with pytest.raises(ValidationError):
            fill_cart("cust-001", make_listing(), customizations=[{"type": "TATTOO", "price": "5"}])

    def test_remove_and_clear(self, services, fill_cart, make_listing):
        cart = fill_cart("cust-001", make_listing(title="A"))
        fill_cart("cust-001", make_listing(title="B"))

        cart = services.carts.remove_item("cust-001", cart.items[0].id)
        assert len(cart.items) == 1

        assert services.carts.clear("cust-001").items == []
