"""Cart management: adding, removing and clearing cart lines."""

import structlog

from inventory.listing.listing import Listing
from ordering.cart.cart import Cart
from shared.exceptions import InsufficientStock, ValidationError
from shared.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)


def get_or_create_cart(uow: UnitOfWork, customer_id: str) -> Cart:
    repo = uow.repository_for(Cart)
    cart = repo.find_by(customer_id=customer_id)
    if cart is None:
        cart = repo.add(Cart.create(customer_id))
    return cart


class CartService:
    def __init__(self, uow_factory) -> None:
        self._uow_factory = uow_factory

    def get_cart(self, customer_id: str) -> Cart:
        with self._uow_factory() as uow:
            return get_or_create_cart(uow, customer_id)

    def add_item(
        self,
        customer_id: str,
        listing_id: str,
        quantity: int = 1,
        selected_variant: dict | None = None,
        personalization: str | None = None,
        customizations: list[dict] | None = None,
    ) -> Cart:
        """Add a listing to the customer's cart.

        Stock is checked here only as a courtesy; the authoritative check is
        the reservation made when the order is created.
        """
        with self._uow_factory() as uow:
            listing = uow.repository_for(Listing).get(listing_id)
            if not listing.is_active:
                raise ValidationError({"listing_id": ["This product is no longer available"]})

            cart = get_or_create_cart(uow, customer_id)
            in_cart = sum(item.quantity for item in cart.items if item.listing_id == listing_id)
            if listing.stock < in_cart + quantity:
                raise InsufficientStock(
                    {"stock": [f"Only {listing.stock} units of {listing.title} available"]}
                )

            cart.add_item(
                listing_id=listing_id,
                quantity=quantity,
                selected_variant=selected_variant,
                personalization=personalization,
                customizations=customizations,
            )

        logger.info("Item added to cart", customer_id=customer_id, listing_id=listing_id, quantity=quantity)
        return cart

    def remove_item(self, customer_id: str, item_id: str) -> Cart:
        with self._uow_factory() as uow:
            cart = get_or_create_cart(uow, customer_id)
            cart.remove_item(item_id)
        return cart

    def clear(self, customer_id: str) -> Cart:
        with self._uow_factory() as uow:
            cart = get_or_create_cart(uow, customer_id)
            cart.clear()
        return cart
