"""Shopping cart: what a customer intends to buy, before checkout.

One cart per customer. Cart lines reference live listings; prices are only
captured when the Order Builder snapshots the cart into an order.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ordering.order.order import CustomizationType
from shared.clock import utc_now
from shared.database import Base
from shared.exceptions import ValidationError
from shared.money import round_money


class CartItemCustomization(Base):
    __tablename__ = "cart_item_customizations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    cart_item_id: Mapped[str] = mapped_column(ForeignKey("cart_items.id"), index=True)
    type: Mapped[str] = mapped_column(String(40))
    price: Mapped[Decimal]
    notes: Mapped[str | None] = mapped_column(Text)

    item: Mapped["CartItem"] = relationship(back_populates="customizations")


class CartItem(Base):
    __tablename__ = "cart_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    cart_id: Mapped[str] = mapped_column(ForeignKey("carts.id"), index=True)
    listing_id: Mapped[str] = mapped_column(ForeignKey("listings.id"))
    quantity: Mapped[int]
    selected_variant: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    personalization: Mapped[str | None] = mapped_column(Text)

    cart: Mapped["Cart"] = relationship(back_populates="items")
    customizations: Mapped[list[CartItemCustomization]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class Cart(Base):
    __tablename__ = "carts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(36), unique=True)
    created_at: Mapped[datetime]
    updated_at: Mapped[datetime]

    items: Mapped[list[CartItem]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @classmethod
    def create(cls, customer_id: str) -> "Cart":
        now = utc_now()
        return cls(id=str(uuid4()), customer_id=customer_id, created_at=now, updated_at=now, items=[])

    @property
    def is_empty(self) -> bool:
        return not self.items

    def add_item(
        self,
        listing_id: str,
        quantity: int,
        selected_variant: dict | None = None,
        personalization: str | None = None,
        customizations: list[dict] | None = None,
    ) -> CartItem:
        """Add a line. Plain lines for the same listing and variant are merged."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        customization_rows = [self._build_customization(data) for data in customizations or []]

        if not customization_rows and not personalization:
            for item in self.items:
                if (
                    item.listing_id == listing_id
                    and item.selected_variant == selected_variant
                    and not item.customizations
                    and not item.personalization
                ):
                    item.quantity += quantity
                    self.updated_at = utc_now()
                    return item

        item = CartItem(
            id=str(uuid4()),
            listing_id=listing_id,
            quantity=quantity,
            selected_variant=selected_variant,
            personalization=personalization,
            customizations=customization_rows,
        )
        self.items.append(item)
        self.updated_at = utc_now()
        return item

    def remove_item(self, item_id: str) -> None:
        item = next((i for i in self.items if i.id == item_id), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found"]})
        self.items.remove(item)
        self.updated_at = utc_now()

    def clear(self) -> None:
        self.items.clear()
        self.updated_at = utc_now()

    @staticmethod
    def _build_customization(data: dict) -> CartItemCustomization:
        try:
            kind = CustomizationType(data.get("type"))
        except ValueError:
            raise ValidationError({"customizations": [f"Unknown customization type `{data.get('type')}`"]}) from None

        price = round_money(data.get("price", 0))
        if price < 0:
            raise ValidationError({"customizations": ["Customization price cannot be negative"]})

        return CartItemCustomization(id=str(uuid4()), type=kind.value, price=price, notes=data.get("notes"))
