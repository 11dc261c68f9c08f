"""CSV import schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.services.csv_import.canonical import DataType


class Classification(BaseModel):
    """Proposed data type and column mapping for an uploaded file."""

    data_type: DataType = DataType.UNKNOWN
    column_mappings: Dict[str, str] = Field(default_factory=dict)
    confidence: int = Field(default=0, ge=0, le=100)
    suggestions: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    detected_columns: List[str] = Field(default_factory=list)
    source: str = "heuristic"  # heuristic, oracle, fallback


class ValidationIssue(BaseModel):
    """A row-indexed validation error or warning. Row 0 means the mapping itself."""

    row: int
    field: str
    message: str
    value: Optional[Any] = None


class ValidationStats(BaseModel):
    total_rows: int = 0
    valid_rows: int = 0
    invalid_rows: int = 0
    error_count: int = 0
    warning_count: int = 0


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    stats: ValidationStats = Field(default_factory=ValidationStats)


class DuplicatePolicy:
    FAIL = "fail"
    SKIP = "skip"


class ImportOptions(BaseModel):
    """Per-execution switches for creation-on-demand and duplicate handling."""

    create_missing_accounts: bool = False
    create_missing_categories: bool = True
    create_missing_payees: bool = True
    on_duplicate_account: str = DuplicatePolicy.FAIL
    on_duplicate_category: str = DuplicatePolicy.FAIL

    @field_validator("on_duplicate_account", "on_duplicate_category")
    @classmethod
    def validate_policy(cls, v: str) -> str:
        v = v.lower().strip()
        if v not in (DuplicatePolicy.FAIL, DuplicatePolicy.SKIP):
            raise ValueError("Duplicate policy must be 'fail' or 'skip'")
        return v


class ExecutionResult(BaseModel):
    """Per-row outcomes of one execution, before they are folded into the session."""

    success_count: int = 0
    error_count: int = 0
    duplicate_count: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    created_accounts: int = 0
    created_categories: int = 0
    created_payees: int = 0

    @property
    def processed_count(self) -> int:
        return self.success_count + self.error_count + self.duplicate_count


class ImportSummary(BaseModel):
    """User-facing result of an execute call."""

    import_id: UUID
    data_type: DataType
    imported_rows: int
    failed_rows: int
    duplicate_rows: int
    total_errors: int
    errors: List[str]
    warnings: List[str]
    created_accounts: int = 0
    created_categories: int = 0
    created_payees: int = 0
    message: str


class UploadResponse(BaseModel):
    import_id: UUID
    file_name: str
    file_size: int
    total_rows: int
    detected_columns: List[str]
    preview_rows: List[Dict[str, str]]
    message: str = "File uploaded and parsed successfully"


class AnalyzeRequest(BaseModel):
    """Optional override used to re-analyze as a specific data type."""

    data_type: Optional[DataType] = None


class MappingRequest(BaseModel):
    column_mappings: Dict[str, str]


class PreviewRequest(BaseModel):
    column_mappings: Optional[Dict[str, str]] = None


class PreviewResponse(BaseModel):
    mapped_data: List[Dict[str, Any]]
    column_mappings: Dict[str, str]
    validation: ValidationResult
    total_rows: int
    data_type: DataType
    file_name: str


class ImportSessionSummary(BaseModel):
    """Row in the import history list."""

    id: UUID
    file_name: str
    status: str
    data_type: str
    confidence: int = 0
    total_rows: int
    imported_row_count: int
    failed_row_count: int
    duplicate_row_count: int
    created_at: datetime
    completed_at: Optional[datetime] = None


class ImportSessionDetail(ImportSessionSummary):
    file_size_bytes: int
    detected_columns: List[str]
    preview_rows: List[Dict[str, str]]
    classification: Optional[Classification] = None
    user_confirmed_mappings: Optional[Dict[str, str]] = None
    import_options: Optional[ImportOptions] = None
    import_errors: List[str] = Field(default_factory=list)
    import_warnings: List[str] = Field(default_factory=list)
    failure_reason: Optional[str] = None


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool


class ImportHistoryResponse(BaseModel):
    imports: List[ImportSessionSummary]
    pagination: Pagination
