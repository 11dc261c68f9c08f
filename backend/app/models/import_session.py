"""CSV import session model."""

import uuid
import enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.db_types import UUID
from app.services.csv_import.errors import InvalidStateError
from app.utils.datetime_utils import utc_now_lambda


class ImportStatus(str, enum.Enum):
    """Lifecycle of an import session. Transitions only move forward."""

    PENDING = "pending"
    ANALYZING = "analyzing"
    READY = "ready"
    IMPORTING = "importing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportStatus.COMPLETED, ImportStatus.FAILED)


# Self-loops on ANALYZING (re-analysis) and READY (re-confirmed mapping) are
# not backward moves; everything else must advance.
ALLOWED_TRANSITIONS = {
    ImportStatus.PENDING: {ImportStatus.ANALYZING, ImportStatus.FAILED},
    ImportStatus.ANALYZING: {ImportStatus.ANALYZING, ImportStatus.READY, ImportStatus.FAILED},
    ImportStatus.READY: {ImportStatus.READY, ImportStatus.IMPORTING, ImportStatus.FAILED},
    ImportStatus.IMPORTING: {ImportStatus.COMPLETED, ImportStatus.FAILED},
    ImportStatus.COMPLETED: set(),
    ImportStatus.FAILED: set(),
}


class ImportSession(Base):
    """One uploaded file's journey through classification and execution."""

    __tablename__ = "import_sessions"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    file_name = Column(String(255), nullable=False)
    file_size_bytes = Column(Integer, nullable=False)

    # Parsed file: list of {header: value}, kept whole for re-execution
    raw_rows = Column(JSON, nullable=False)
    preview_rows = Column(JSON, nullable=False, default=list)
    detected_columns = Column(JSON, nullable=False, default=list)
    total_rows = Column(Integer, nullable=False)

    # Classification and mapping
    data_type = Column(String(20), nullable=False, default="unknown")
    classification = Column(JSON, nullable=True)
    user_confirmed_mappings = Column(JSON, nullable=True)
    import_options = Column(JSON, nullable=True)

    status = Column(
        SQLEnum(ImportStatus, name="import_status"),
        nullable=False,
        default=ImportStatus.PENDING,
        index=True,
    )

    # Execution results
    imported_row_count = Column(Integer, default=0, nullable=False)
    failed_row_count = Column(Integer, default=0, nullable=False)
    duplicate_row_count = Column(Integer, default=0, nullable=False)
    import_errors = Column(JSON, nullable=False, default=list)
    import_warnings = Column(JSON, nullable=False, default=list)
    failure_reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utc_now_lambda, nullable=False)
    updated_at = Column(DateTime, default=utc_now_lambda, onupdate=utc_now_lambda, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="import_sessions")

    __table_args__ = (Index("ix_import_sessions_user_created", "user_id", "created_at"),)

    @property
    def effective_mappings(self) -> dict:
        """User-confirmed mapping when present, otherwise the classifier's proposal."""
        if self.user_confirmed_mappings:
            return dict(self.user_confirmed_mappings)
        return dict((self.classification or {}).get("column_mappings") or {})

    def can_transition_to(self, new_status: ImportStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, new_status: ImportStatus) -> None:
        """Advance the state machine.

        Raises:
            InvalidStateError: If the move is not a forward transition
        """
        if not self.can_transition_to(new_status):
            raise InvalidStateError(
                f"Cannot move import from '{self.status.value}' to '{new_status.value}'",
                current_status=self.status.value,
            )
        self.status = new_status

    def __repr__(self):
        return f"<ImportSession {self.file_name} [{self.status.value}]>"
