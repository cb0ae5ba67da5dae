from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditMixin:
    """
    Common columns for every entity: audit timestamps and soft delete.

    Soft-deleted rows stay in the table. Query through visible() so the
    is_deleted filter is applied explicitly at the boundary.
    """

    id = db.Column(db.Integer, primary_key=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True, onupdate=utcnow)

    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @classmethod
    def visible(cls, include_deleted: bool = False):
        query = db.session.query(cls)
        if not include_deleted:
            query = query.filter(cls.is_deleted.is_(False))
        return query

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = utcnow()

    def audit_dict(self) -> dict:
        return {
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at),
        }
