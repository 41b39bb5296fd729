"""
Case Lifecycle Platform
Activity log model.

Models:
    - ActivityLog: append-only record of user actions on any entity.
"""

import json
from datetime import datetime, timezone

from app.models import db


ACTIVITY_ENTITY_TYPES = {
    "individual_process", "collective_process", "task", "document",
}

ACTIVITY_ACTIONS = {
    "created",
    "updated",
    "deleted",
    "status_changed",
    "created_from_existing",
    "checklist_regenerated",
    "urgency_synced",
    "authorization_synced",
    "bulk_update_status_completed",
    # Tasks
    "completed",
    "reassigned",
    "deadline_extended",
}


class ActivityLog(db.Model):
    """
    One row per user action.  ``details_json`` carries a before/after diff
    for updates and counts for cascading deletes.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("idx_activity_entity", "entity_type", "entity_id"),
        db.Index("idx_activity_user", "user_id"),
        db.Index("idx_activity_ts", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, comment="UserProfile.user_id of the actor")
    action = db.Column(db.String(60), nullable=False)
    entity_type = db.Column(db.String(30), nullable=False,
                            comment="individual_process | collective_process | task | …")
    entity_id = db.Column(db.String(36), nullable=False)
    details_json = db.Column(db.Text, default="{}")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False,
                           default=lambda: datetime.now(timezone.utc))

    @property
    def details(self) -> dict:
        try:
            return json.loads(self.details_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


def write_activity(
    *,
    user_id: str,
    action: str,
    entity_type: str,
    entity_id,
    details: dict | None = None,
) -> ActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.
    """
    log = ActivityLog(
        user_id=str(user_id),
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details_json=json.dumps(details or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
