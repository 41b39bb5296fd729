"""
Case Lifecycle Platform
Task domain model.

Models:
    - Task: follow-up work item on a case or a collective process
"""

from datetime import datetime, timezone

from app.models import db


TASK_PRIORITIES = {"low", "medium", "high", "urgent"}
TASK_STATUSES = {"todo", "in_progress", "completed", "cancelled"}


class Task(db.Model):
    __tablename__ = "tasks"
    __table_args__ = (
        db.Index("idx_task_assignee_status", "assigned_to", "status"),
        db.CheckConstraint(
            "priority IN ('low','medium','high','urgent')", name="ck_task_priority",
        ),
        db.CheckConstraint(
            "status IN ('todo','in_progress','completed','cancelled')", name="ck_task_status",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    individual_process_id = db.Column(
        db.Integer, db.ForeignKey("individual_processes.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    collective_process_id = db.Column(
        db.Integer, db.ForeignKey("collective_processes.id", ondelete="CASCADE"),
        nullable=True, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    due_date = db.Column(db.Date, nullable=True)
    priority = db.Column(db.String(10), default="medium", nullable=False)
    status = db.Column(db.String(20), default="todo", nullable=False)
    assigned_to = db.Column(db.String(64), nullable=False, comment="UserProfile.user_id")
    created_by = db.Column(db.String(64), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by = db.Column(db.String(64), nullable=True)
    is_auto_generated = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                           onupdate=lambda: datetime.now(timezone.utc))

    individual_process = db.relationship("IndividualProcess")
    collective_process = db.relationship("CollectiveProcess")

    def to_dict(self):
        return {
            "id": self.id,
            "individual_process_id": self.individual_process_id,
            "collective_process_id": self.collective_process_id,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "priority": self.priority,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "created_by": self.created_by,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "completed_by": self.completed_by,
            "is_auto_generated": self.is_auto_generated,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Task {self.id}: {self.title[:40]}>"
