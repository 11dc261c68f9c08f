"""Fold an execution's outcome into its session and summarize it."""

from app.config import settings
from app.models.import_session import ImportSession, ImportStatus
from app.schemas.csv_import import ExecutionResult, ImportSummary
from app.services.csv_import.canonical import DataType
from app.utils.datetime_utils import utc_now


def aggregate_result(import_session: ImportSession, result: ExecutionResult) -> ImportSummary:
    """
    Record final counters on the session, complete it and build the summary.

    The caller commits. Only the first IMPORT_MAX_ERRORS_RETURNED errors and
    warnings are returned; the session keeps the full lists.
    """
    import_session.transition_to(ImportStatus.COMPLETED)
    import_session.imported_row_count = result.success_count
    import_session.failed_row_count = result.error_count
    import_session.duplicate_row_count = result.duplicate_count
    import_session.import_errors = list(result.errors)
    import_session.import_warnings = list(result.warnings)
    import_session.completed_at = utc_now()

    data_type = DataType(import_session.data_type)
    limit = settings.IMPORT_MAX_ERRORS_RETURNED
    message = f"Successfully imported {result.success_count} {data_type.value}"
    if result.error_count:
        message += f" ({result.error_count} failed)"
    if result.duplicate_count:
        message += f" ({result.duplicate_count} duplicates skipped)"

    return ImportSummary(
        import_id=import_session.id,
        data_type=data_type,
        imported_rows=result.success_count,
        failed_rows=result.error_count,
        duplicate_rows=result.duplicate_count,
        total_errors=len(result.errors),
        errors=result.errors[:limit],
        warnings=result.warnings[:limit],
        created_accounts=result.created_accounts,
        created_categories=result.created_categories,
        created_payees=result.created_payees,
        message=message,
    )
