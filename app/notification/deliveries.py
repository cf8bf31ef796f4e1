"""Delivery ledger used by the transport layer.

The core never sends anything.  An external sender polls pending
deliveries, performs the send and reports the outcome back through
``update_delivery_status``.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.constants import DeliveryStatus, MessageChannel
from app.core.errors import NotFoundError
from app.db.models import Notification, NotificationDelivery

logger = logging.getLogger(__name__)


def get_pending_deliveries(db: Session, notification_ids: Sequence[str]) -> list[NotificationDelivery]:
    """Return pending deliveries of *notification_ids*, oldest first."""
    if not notification_ids:
        return []
    stmt = (
        select(NotificationDelivery)
        .where(
            NotificationDelivery.notification_id.in_(list(notification_ids)),
            NotificationDelivery.status == DeliveryStatus.PENDING.value,
        )
        .options(selectinload(NotificationDelivery.notification).selectinload(Notification.user))
        .order_by(NotificationDelivery.created_at.asc(), NotificationDelivery.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def update_delivery_status(
    db: Session,
    delivery_id: str,
    status: DeliveryStatus | str,
    message_sent_via: MessageChannel | str | None = None,
) -> NotificationDelivery:
    """Record the outcome of a send attempt.

    Only ``sent`` and ``failed`` are accepted.  ``sent_at`` is stamped
    when the delivery is marked sent.  Raises ``NotFoundError`` for an
    unknown delivery and ``ValueError`` for an invalid status or channel.
    """
    status = DeliveryStatus(status)
    if status == DeliveryStatus.PENDING:
        raise ValueError("A delivery can only be marked sent or failed")
    channel = MessageChannel(message_sent_via) if message_sent_via else None

    delivery = db.get(NotificationDelivery, delivery_id)
    if delivery is None:
        raise NotFoundError("NotificationDelivery", delivery_id)

    delivery.status = status.value
    if status == DeliveryStatus.SENT:
        delivery.sent_at = datetime.now(timezone.utc)
    if channel is not None:
        delivery.message_sent_via = channel.value
    db.flush()

    logger.info("Delivery %s (%s) marked %s", delivery.id, delivery.medium, status.value)
    return delivery
