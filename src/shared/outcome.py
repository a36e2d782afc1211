"""Payment outcomes shared by the order and ticket state machines."""

from enum import Enum


class PaymentOutcome(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"

    @classmethod
    def from_gateway_status(cls, status: str | None) -> "PaymentOutcome | None":
        """Map a gateway payment status to an outcome.

        Statuses that are neither final-success nor final-failure (pending,
        in_process, authorized, ...) map to ``None`` and are only acknowledged.
        """
        if status == "approved":
            return cls.APPROVED
        if status in ("rejected", "cancelled"):
            return cls.REJECTED
        return None
