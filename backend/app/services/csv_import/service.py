"""Import session orchestration: upload, analyze, map, preview, validate, execute."""

import logging
import math
import re
from time import perf_counter
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.metrics import csv_import_execution_seconds, csv_import_uploads_total
from app.crud.import_session import import_session_crud
from app.models.import_session import ImportSession, ImportStatus
from app.models.user import User
from app.schemas.csv_import import (
    Classification,
    ImportHistoryResponse,
    ImportOptions,
    ImportSessionDetail,
    ImportSessionSummary,
    ImportSummary,
    Pagination,
    PreviewResponse,
    ValidationResult,
)
from app.services.csv_import.aggregator import aggregate_result
from app.services.csv_import.canonical import (
    DataType,
    apply_mapping,
    missing_required_fields,
    normalize_mapping,
    unknown_fields,
)
from app.services.csv_import.classifier import TypeClassifier
from app.services.csv_import.errors import (
    EmptyDataError,
    EntityStoreError,
    FileTooLargeError,
    ImportNotFoundError,
    InvalidFileError,
    InvalidStateError,
    MappingError,
    ParseError,
)
from app.services.csv_import.executor import ExecutionContext, ReconciliationExecutor
from app.services.csv_import.oracle import get_classification_oracle
from app.services.csv_import.row_parser import parse_csv
from app.services.csv_import.validator import MappingValidator

logger = logging.getLogger(__name__)

CSV_CONTENT_TYPES = ("text/csv", "application/csv", "application/vnd.ms-excel")


def sanitize_file_name(file_name: str) -> str:
    """Strip path components and unsafe characters from an uploaded file name."""
    name = file_name.replace("/", "_").replace("\\", "_").replace("\x00", "")
    name = name.lstrip(".")
    name = re.sub(r"[^a-zA-Z0-9._ -]", "_", name).strip()
    if len(name) > 255:
        stem, ext = name.rsplit(".", 1) if "." in name else (name, "")
        name = stem[:250] + ("." + ext if ext else "")
    return name or "upload.csv"


def default_import_options() -> ImportOptions:
    return ImportOptions(
        create_missing_accounts=settings.IMPORT_CREATE_MISSING_ACCOUNTS,
        create_missing_categories=settings.IMPORT_CREATE_MISSING_CATEGORIES,
        create_missing_payees=settings.IMPORT_CREATE_MISSING_PAYEES,
        on_duplicate_account=settings.IMPORT_DUPLICATE_POLICY,
        on_duplicate_category=settings.IMPORT_DUPLICATE_POLICY,
    )


class CSVImportService:
    """Drives an ImportSession through its state machine."""

    def __init__(self, classifier: Optional[TypeClassifier] = None):
        self._classifier = classifier

    @property
    def classifier(self) -> TypeClassifier:
        if self._classifier is None:
            self._classifier = TypeClassifier(oracle=get_classification_oracle())
        return self._classifier

    @staticmethod
    def decode_upload(
        file_name: Optional[str], content: bytes, content_type: Optional[str] = None
    ) -> str:
        """
        Check an upload is a CSV file of acceptable size and decode it.

        Raises:
            InvalidFileError: Wrong extension/content type or not UTF-8
            FileTooLargeError: Larger than IMPORT_MAX_FILE_SIZE_BYTES
        """
        if not file_name:
            raise InvalidFileError("Filename is required")

        is_csv_name = file_name.lower().endswith(".csv")
        is_csv_type = (content_type or "").split(";")[0].strip().lower() in CSV_CONTENT_TYPES
        if not (is_csv_name or is_csv_type):
            raise InvalidFileError("Only CSV files are allowed (.csv extension)")

        if len(content) > settings.IMPORT_MAX_FILE_SIZE_BYTES:
            raise FileTooLargeError(
                f"File exceeds the {settings.IMPORT_MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB limit"
            )

        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise InvalidFileError("File must be UTF-8 encoded text") from e

    async def upload(
        self,
        db: AsyncSession,
        user: User,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> ImportSession:
        """
        Parse an uploaded file and persist it as a pending session.

        Nothing is persisted when the file cannot be parsed.
        """
        text = self.decode_upload(file_name, content, content_type)

        try:
            parsed = parse_csv(text)
        except EmptyDataError:
            csv_import_uploads_total.labels(outcome="empty").inc()
            raise
        except ParseError as e:
            csv_import_uploads_total.labels(outcome="parse_error").inc()
            logger.info("Rejected upload %s from user %s: %s", file_name, user.id, e.message)
            raise

        import_session = await import_session_crud.create(
            db,
            user_id=user.id,
            file_name=sanitize_file_name(file_name),
            file_size_bytes=len(content),
            parsed=parsed,
        )
        csv_import_uploads_total.labels(outcome="accepted").inc()
        logger.info(
            "Created import %s for user %s: %d rows, %d columns",
            import_session.id, user.id, parsed.total_rows, len(parsed.headers),
        )
        return import_session

    @staticmethod
    async def get(db: AsyncSession, user: User, import_id: UUID) -> ImportSession:
        """
        Raises:
            ImportNotFoundError: If the session does not exist or belongs to someone else
        """
        import_session = await import_session_crud.get_for_user(db, import_id, user.id)
        if import_session is None:
            raise ImportNotFoundError("Import session not found")
        return import_session

    async def analyze(
        self,
        db: AsyncSession,
        user: User,
        import_id: UUID,
        data_type: Optional[DataType] = None,
    ) -> Classification:
        """
        Classify the file and propose a mapping.

        A known type whose mapping covers every required field moves the
        session to ready; a known type with gaps stays analyzing for the user
        to complete; an unknown type fails the session.
        """
        import_session = await self.get(db, user, import_id)
        import_session.transition_to(ImportStatus.ANALYZING)

        if data_type == DataType.UNKNOWN:
            data_type = None

        classification = await self.classifier.classify(
            headers=list(import_session.detected_columns),
            sample_rows=list(import_session.preview_rows),
            file_name=import_session.file_name,
            total_rows=import_session.total_rows,
            data_type=data_type,
        )

        import_session.classification = classification.model_dump(mode="json")
        import_session.data_type = classification.data_type.value
        import_session.user_confirmed_mappings = None

        if classification.data_type == DataType.UNKNOWN:
            import_session.transition_to(ImportStatus.FAILED)
            import_session.failure_reason = "Could not determine data type automatically"
        elif not MappingValidator.validate_mapping(
            classification.column_mappings, classification.data_type
        ):
            import_session.transition_to(ImportStatus.READY)

        await db.commit()
        await db.refresh(import_session)
        logger.info(
            "Analyzed import %s as %s (confidence %d, source %s) -> %s",
            import_session.id, classification.data_type.value, classification.confidence,
            classification.source, import_session.status.value,
        )
        return classification

    async def confirm_mapping(
        self,
        db: AsyncSession,
        user: User,
        import_id: UUID,
        column_mappings: Dict[str, str],
    ) -> ImportSession:
        """
        Store a user-confirmed mapping and mark the session ready.

        Raises:
            InvalidStateError: If the session is not analyzing or ready
            MappingError: If the mapping is illegal or incomplete (session unchanged)
        """
        import_session = await self.get(db, user, import_id)
        if not import_session.can_transition_to(ImportStatus.READY):
            raise InvalidStateError(
                f"Cannot confirm a mapping while import is '{import_session.status.value}'",
                current_status=import_session.status.value,
            )

        data_type = DataType(import_session.data_type)
        if data_type == DataType.UNKNOWN:
            raise MappingError("Analyze the file before confirming a mapping")

        mapping = normalize_mapping(column_mappings)
        unknown_columns = sorted(set(mapping) - set(import_session.detected_columns))
        if unknown_columns:
            raise MappingError(f"Unknown columns: {', '.join(unknown_columns)}")

        issues = MappingValidator.validate_mapping(mapping, data_type)
        if issues:
            raise MappingError(
                "; ".join(issue.message for issue in issues),
                missing_fields=missing_required_fields(mapping, data_type),
                unknown_fields=unknown_fields(mapping, data_type),
            )

        import_session.user_confirmed_mappings = mapping
        import_session.transition_to(ImportStatus.READY)
        await db.commit()
        await db.refresh(import_session)
        return import_session

    def _resolve_mapping(
        self, import_session: ImportSession, column_mappings: Optional[Dict[str, str]]
    ) -> Dict[str, str]:
        if column_mappings:
            return normalize_mapping(column_mappings)
        if import_session.classification is None and not import_session.user_confirmed_mappings:
            raise MappingError("No column mapping available: analyze the file or supply a mapping")
        return normalize_mapping(import_session.effective_mappings)

    async def preview(
        self,
        db: AsyncSession,
        user: User,
        import_id: UUID,
        column_mappings: Optional[Dict[str, str]] = None,
    ) -> PreviewResponse:
        """Apply a candidate mapping to the preview rows. Never persists anything."""
        import_session = await self.get(db, user, import_id)
        mapping = self._resolve_mapping(import_session, column_mappings)
        data_type = DataType(import_session.data_type)
        rows = list(import_session.preview_rows)

        return PreviewResponse(
            mapped_data=[apply_mapping(row, mapping) for row in rows],
            column_mappings=mapping,
            validation=MappingValidator.validate(rows, mapping, data_type),
            total_rows=import_session.total_rows,
            data_type=data_type,
            file_name=import_session.file_name,
        )

    async def validate(
        self,
        db: AsyncSession,
        user: User,
        import_id: UUID,
        column_mappings: Optional[Dict[str, str]] = None,
    ) -> ValidationResult:
        """Validate every row of the file under the effective (or given) mapping."""
        import_session = await self.get(db, user, import_id)
        mapping = self._resolve_mapping(import_session, column_mappings)
        return MappingValidator.validate(
            list(import_session.raw_rows), mapping, DataType(import_session.data_type)
        )

    async def execute(
        self,
        db: AsyncSession,
        user: User,
        import_id: UUID,
        options: Optional[ImportOptions] = None,
    ) -> ImportSummary:
        """
        Import every row of a ready session.

        Raises:
            InvalidStateError: If the session is not ready (session unchanged)
            EntityStoreError: If the store fails; the session is marked failed
        """
        import_session = await self.get(db, user, import_id)
        import_session.transition_to(ImportStatus.IMPORTING)

        options = options or default_import_options()
        data_type = DataType(import_session.data_type)
        context = ExecutionContext(
            import_id=import_session.id,
            user_id=user.id,
            data_type=data_type,
            mapping=normalize_mapping(import_session.effective_mappings),
            rows=list(import_session.raw_rows),
            options=options,
        )

        import_session.import_options = options.model_dump(mode="json")
        import_session.imported_row_count = 0
        import_session.failed_row_count = 0
        import_session.duplicate_row_count = 0
        import_session.import_errors = []
        import_session.import_warnings = []
        await db.commit()

        logger.info(
            "Executing import %s: %d %s rows", import_id, len(context.rows), data_type.value
        )
        executor = ReconciliationExecutor(db, context)
        started = perf_counter()
        try:
            result = await executor.run()
        except EntityStoreError as e:
            await db.rollback()
            await db.refresh(import_session)
            partial = executor.result
            import_session.imported_row_count = partial.success_count
            import_session.failed_row_count = partial.error_count
            import_session.duplicate_row_count = partial.duplicate_count
            import_session.import_errors = list(partial.errors)
            import_session.import_warnings = list(partial.warnings)
            import_session.transition_to(ImportStatus.FAILED)
            import_session.failure_reason = e.message
            await db.commit()
            logger.error("Import %s failed: %s", import_id, e.message)
            raise
        finally:
            csv_import_execution_seconds.labels(data_type=data_type.value).observe(
                perf_counter() - started
            )

        # Rolled-back rows expire loaded instances
        await db.refresh(import_session)
        summary = aggregate_result(import_session, result)
        await db.commit()

        logger.info(
            "Import %s completed: %d imported, %d failed, %d duplicates",
            import_id, result.success_count, result.error_count, result.duplicate_count,
        )
        return summary

    @staticmethod
    def to_summary(import_session: ImportSession) -> ImportSessionSummary:
        return ImportSessionSummary(
            id=import_session.id,
            file_name=import_session.file_name,
            status=import_session.status.value,
            data_type=import_session.data_type,
            confidence=(import_session.classification or {}).get("confidence", 0),
            total_rows=import_session.total_rows,
            imported_row_count=import_session.imported_row_count,
            failed_row_count=import_session.failed_row_count,
            duplicate_row_count=import_session.duplicate_row_count,
            created_at=import_session.created_at,
            completed_at=import_session.completed_at,
        )

    @staticmethod
    def to_detail(import_session: ImportSession) -> ImportSessionDetail:
        summary = CSVImportService.to_summary(import_session)
        return ImportSessionDetail(
            **summary.model_dump(),
            file_size_bytes=import_session.file_size_bytes,
            detected_columns=list(import_session.detected_columns or []),
            preview_rows=list(import_session.preview_rows or []),
            classification=import_session.classification,
            user_confirmed_mappings=import_session.user_confirmed_mappings,
            import_options=import_session.import_options,
            import_errors=list(import_session.import_errors or []),
            import_warnings=list(import_session.import_warnings or []),
            failure_reason=import_session.failure_reason,
        )

    @staticmethod
    async def history(
        db: AsyncSession,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[ImportStatus] = None,
    ) -> ImportHistoryResponse:
        """Newest-first page of the user's imports."""
        sessions, total = await import_session_crud.list_for_user(
            db, user.id, page=page, limit=limit, status=status
        )
        total_pages = math.ceil(total / limit) if total else 0
        return ImportHistoryResponse(
            imports=[CSVImportService.to_summary(s) for s in sessions],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_count=total,
                has_next_page=page < total_pages,
                has_prev_page=page > 1,
            ),
        )

    async def delete(self, db: AsyncSession, user: User, import_id: UUID) -> None:
        """Delete a session. Imported entities are kept."""
        import_session = await self.get(db, user, import_id)
        await import_session_crud.delete(db, import_session)
        logger.info("Deleted import %s for user %s", import_id, user.id)


csv_import_service = CSVImportService()
