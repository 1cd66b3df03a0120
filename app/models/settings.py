"""
Settings Model: typed key/value store.

Values are stored as text and parsed on read according to ``type``
(see app.services.settings_service.parse_value).
"""

from datetime import datetime, timezone

from app.models import db

SETTING_TYPES = ("string", "number", "boolean", "json")


class Setting(db.Model):
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False, default="")
    description = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(20), nullable=False, default="string", comment="string | number | boolean | json")
    category = db.Column(db.String(100), nullable=False, default="general")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "description": self.description,
            "type": self.type,
            "category": self.category,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
