"""MercadoPago gateway adapter (Checkout Pro over the REST API)."""

from decimal import Decimal

import httpx
import structlog

from payments.gateway.port import GatewayPayment, PaymentGateway, PreferenceRequest, PreferenceResult
from shared.exceptions import ExternalServiceError, ObjectNotFoundError

logger = structlog.get_logger(__name__)

SANDBOX_CHECKOUT_URL = "https://sandbox.mercadopago.com.pe/checkout/v1/redirect?pref_id="


class MercadoPagoGateway(PaymentGateway):
    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    def close(self) -> None:
        self._client.close()

    def create_preference(self, request: PreferenceRequest) -> PreferenceResult:
        payload = {
            "items": [
                {
                    "id": item.id,
                    "title": item.title,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": request.currency,
                }
                for item in request.items
            ],
            "external_reference": request.external_reference,
            "back_urls": request.back_urls,
            "auto_return": "approved",
        }
        if request.notification_url:
            payload["notification_url"] = request.notification_url
        if request.payer_email:
            payload["payer"] = {"email": request.payer_email}

        body = self._request("POST", "/checkout/preferences", json=payload)
        preference_id = body["id"]
        return PreferenceResult(
            preference_id=preference_id,
            init_point=body.get("init_point") or "",
            sandbox_init_point=body.get("sandbox_init_point") or f"{SANDBOX_CHECKOUT_URL}{preference_id}",
        )

    def get_payment(self, payment_id: str) -> GatewayPayment:
        body = self._request("GET", f"/v1/payments/{payment_id}")
        amount = body.get("transaction_amount")
        return GatewayPayment(
            id=str(body["id"]),
            status=body.get("status"),
            external_reference=body.get("external_reference"),
            payment_method=body.get("payment_method_id"),
            status_detail=body.get("status_detail"),
            transaction_amount=Decimal(str(amount)) if amount is not None else None,
        )

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("MercadoPago request failed", method=method, path=path, error=str(exc))
            raise ExternalServiceError({"gateway": ["Payment gateway is unreachable"]}) from exc

        if response.status_code == 404:
            raise ObjectNotFoundError({"gateway": [f"MercadoPago resource not found: {path}"]})
        if response.is_error:
            logger.error(
                "MercadoPago returned an error",
                method=method,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise ExternalServiceError({"gateway": [f"Payment gateway error ({response.status_code})"]})
        return response.json()
