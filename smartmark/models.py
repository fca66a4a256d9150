from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone

from flask_login import UserMixin

from smartmark.extensions import db

CATEGORIES = ("Work", "Study", "Personal", "General")
DEFAULT_CATEGORY = "General"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_category(value) -> str:
    text = (value or "").strip() if isinstance(value, str) else ""
    return text or DEFAULT_CATEGORY


@dataclass(frozen=True)
class Bookmark:
    id: str
    title: str
    url: str
    category: str = DEFAULT_CATEGORY
    created_at: str | None = None
    is_favorite: bool = False

    @classmethod
    def from_row(cls, row: dict) -> Bookmark:
        created_at = row.get("created_at")
        if isinstance(created_at, datetime):
            created_at = created_at.isoformat()
        return cls(
            id=str(row["id"]),
            title=row.get("title") or "",
            url=row.get("url") or "",
            category=normalize_category(row.get("category")),
            created_at=created_at or None,
            is_favorite=bool(row.get("is_favorite")),
        )

    def with_favorite(self, value: bool) -> Bookmark:
        return replace(self, is_favorite=value)

    def as_dict(self) -> dict:
        return asdict(self)


class AuthenticatedUser(UserMixin):
    def __init__(
        self,
        user_id: str,
        email: str | None = None,
        access_token: str | None = None,
    ):
        self.id = user_id
        self.email = email
        self.access_token = access_token

    @property
    def user_id(self) -> str:
        return self.id


class BookmarkRow(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(255), nullable=False, index=True)
    title = db.Column(db.String(512), nullable=False)
    url = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(64), nullable=True)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (db.Index("ix_bookmark_user_created", "user_id", "created_at"),)

    def as_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "url": self.url,
            "category": self.category,
            "is_favorite": self.is_favorite,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
