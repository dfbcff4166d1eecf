import logging
from typing import Any

from sqlalchemy.orm import Session

from travel_desk.models.audit_event import AuditEvent
from travel_desk.models.user import User

logger = logging.getLogger(__name__)


def log_event(
    *,
    db: Session,
    actor: User | None,
    action: str,
    entity_type: str,
    entity_id,
    metadata: dict[str, Any] | None = None,
):
    """Stage an audit row in the caller's transaction; it commits or rolls back with it."""
    event = AuditEvent(
        actor_user_id=actor.id if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=metadata,
    )
    db.add(event)
    logger.debug("audit %s %s:%s by %s", action, entity_type, entity_id, actor.id if actor else None)
    return event
