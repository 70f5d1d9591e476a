"""SQLModel model for the key-value document tree behind the store."""
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreNode(SQLModel, table=True):
    """
    One JSON document stored at a slash-separated path.

    A value written at ``users/t/items/abc`` lives in exactly one row; reading
    ``users/t/items`` reassembles the children from rows sharing that prefix.
    """

    __tablename__ = "store_nodes"

    path: str = Field(primary_key=True)
    value: str  # JSON text
    updated_at: datetime = Field(default_factory=utcnow)
