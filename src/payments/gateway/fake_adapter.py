"""Configurable fake payment gateway for development and testing.

Simulates a hosted-checkout gateway without any external calls. Payments are
registered up front (``register_payment``) and then reported back by
``get_payment``, which is how webhook processing reads them.
"""

from uuid import uuid4

from payments.gateway.port import GatewayPayment, PaymentGateway, PreferenceRequest, PreferenceResult
from shared.exceptions import ExternalServiceError, ObjectNotFoundError


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.preferences: list[PreferenceRequest] = []
        self.payments: dict[str, GatewayPayment] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def register_payment(
        self,
        external_reference: str,
        status: str = "approved",
        payment_id: str | None = None,
        payment_method: str = "visa",
    ) -> GatewayPayment:
        payment = GatewayPayment(
            id=payment_id or f"fake_pay_{uuid4().hex[:12]}",
            status=status,
            external_reference=external_reference,
            payment_method=payment_method,
        )
        self.payments[payment.id] = payment
        return payment

    def create_preference(self, request: PreferenceRequest) -> PreferenceResult:
        self.calls.append({"method": "create_preference", "external_reference": request.external_reference})
        if not self.should_succeed:
            raise ExternalServiceError({"gateway": [self.failure_reason]})

        self.preferences.append(request)
        preference_id = f"fake_pref_{uuid4().hex[:12]}"
        return PreferenceResult(
            preference_id=preference_id,
            init_point=f"https://checkout.fake/redirect?pref_id={preference_id}",
            sandbox_init_point=f"https://sandbox.checkout.fake/redirect?pref_id={preference_id}",
        )

    def get_payment(self, payment_id: str) -> GatewayPayment:
        self.calls.append({"method": "get_payment", "payment_id": payment_id})
        if not self.should_succeed:
            raise ExternalServiceError({"gateway": [self.failure_reason]})
        if payment_id not in self.payments:
            raise ObjectNotFoundError({"payment": [f"Payment `{payment_id}` is unknown to the gateway"]})
        return self.payments[payment_id]
