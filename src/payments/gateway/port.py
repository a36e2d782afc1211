"""Payment gateway port (abstract interface).

Defines the contract that gateway adapters implement so checkout and webhook
processing never depend on a concrete provider: ``FakeGateway`` in
development and tests, ``MercadoPagoGateway`` in production.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class PreferenceItem:
    """One checkout line as the gateway displays it."""

    id: str
    title: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PreferenceRequest:
    items: list[PreferenceItem]
    external_reference: str
    currency: str
    back_urls: dict[str, str] = field(default_factory=dict)
    notification_url: str | None = None
    payer_email: str | None = None

    @property
    def total(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal(0))


@dataclass(frozen=True)
class PreferenceResult:
    """A hosted checkout session."""

    preference_id: str
    init_point: str
    sandbox_init_point: str


@dataclass(frozen=True)
class GatewayPayment:
    """A payment as reported by the gateway."""

    id: str
    status: str  # approved, rejected, cancelled, pending, in_process, ...
    external_reference: str | None
    payment_method: str | None = None
    status_detail: str | None = None
    transaction_amount: Decimal | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_preference(self, request: PreferenceRequest) -> PreferenceResult:
        """Create a hosted checkout session for the given lines."""
        ...

    @abstractmethod
    def get_payment(self, payment_id: str) -> GatewayPayment:
        """Fetch the authoritative state of a payment."""
        ...
