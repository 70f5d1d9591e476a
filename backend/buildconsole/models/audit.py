"""SQLModel model for the backup import audit trail."""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from buildconsole.models.document import utcnow


class ImportLog(SQLModel, table=True):
    """Audit log of every backup import attempt."""

    __tablename__ = "import_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    file_path: str
    file_name: str
    status: str  # "success", "partial", "error"
    items_imported: int = Field(default=0)
    estimates_imported: int = Field(default=0)
    customers_imported: int = Field(default=0)
    followups_imported: int = Field(default=0)
    error_message: Optional[str] = None
    warnings: Optional[str] = None  # JSON list of warning messages
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
