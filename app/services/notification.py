"""
Case Lifecycle Platform
Notification Service.

Central service for creating, broadcasting and querying in-app
notifications.  Lifecycle code never calls it directly; it emits events to
the event sink, whose handlers use ``notify_company_users`` and ``create``.
"""

from datetime import datetime, timezone

from sqlalchemy import select

from app.models import db
from app.models.notification import Notification
from app.models.reference import UserProfile


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, title, message="", type="system", entity_type="", entity_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            user_id=str(user_id),
            type=type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    @staticmethod
    def broadcast(*, user_ids, title, message="", type="system", entity_type="", entity_id=None):
        """
        Send the same notification to several users.

        Returns:
            List of created Notification instances.
        """
        notifications = []
        for uid in dict.fromkeys(str(u) for u in user_ids):
            notif = Notification(
                user_id=uid,
                type=type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            db.session.add(notif)
            notifications.append(notif)
        db.session.commit()
        return notifications

    @staticmethod
    def notify_company_users(company_id, *, title, message="", type="system",
                             entity_type="", entity_id=None, exclude_user_id=None):
        """Notify every active user of a company.  Returns the created rows."""
        if company_id is None:
            return []
        user_ids = db.session.execute(
            select(UserProfile.user_id).where(
                UserProfile.company_id == company_id,
                UserProfile.is_active.is_(True),
            )
        ).scalars().all()
        if exclude_user_id is not None:
            user_ids = [u for u in user_ids if u != str(exclude_user_id)]
        if not user_ids:
            return []
        return NotificationService.broadcast(
            user_ids=user_ids, title=title, message=message, type=type,
            entity_type=entity_type, entity_id=entity_id,
        )

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=50, offset=0):
        """
        Retrieve notifications for a user, newest first.
        """
        q = Notification.query.filter_by(user_id=str(user_id))
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(user_id):
        """Return count of unread notifications."""
        return Notification.query.filter_by(user_id=str(user_id), is_read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, user_id):
        """Mark a single notification as read.  Returns None if it is not the user's."""
        notif = db.session.get(Notification, notification_id)
        if not notif or notif.user_id != str(user_id):
            return None
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(user_id):
        """Mark all notifications of a user as read."""
        now = datetime.now(timezone.utc)
        count = (
            Notification.query.filter_by(user_id=str(user_id), is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count
