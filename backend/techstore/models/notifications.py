from __future__ import annotations

import json

from ..extensions import db
from techstore.time_utils import to_utc_z


class Notification(db.Model):
    """
    In-app notification row.

    Written in the same transaction as the order or refund change that
    triggers it. Delivering it (email, push, UI) is someone else's job.
    """
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    notification_type = db.Column(db.String(32), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    payload = db.Column(db.Text, nullable=True)  # JSON object

    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "notification_type": self.notification_type,
            "message": self.message,
            "payload": json.loads(self.payload) if self.payload else None,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }
