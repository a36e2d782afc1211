"""Notifications bounded context: best-effort messages about orders, tickets and payouts.

Ordering and ticketing hand their notification events over after their own
transaction commits. Each one becomes a ``Notification`` aggregate whose
delivery status is tracked here, so failed deliveries stay visible.
"""

import structlog
from protean.domain import Domain

notifications = Domain(name="notifications")

logger = structlog.get_logger(__name__)
