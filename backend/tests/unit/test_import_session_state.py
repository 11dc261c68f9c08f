"""Tests for the import session state machine and result aggregation."""

from uuid import uuid4

import pytest

from app.models.import_session import ImportSession, ImportStatus
from app.schemas.csv_import import ExecutionResult
from app.services.csv_import.aggregator import aggregate_result
from app.services.csv_import.errors import InvalidStateError


def make_session(status=ImportStatus.PENDING, **kwargs) -> ImportSession:
    defaults = dict(
        id=uuid4(),
        user_id=uuid4(),
        file_name="bank.csv",
        file_size_bytes=100,
        raw_rows=[],
        total_rows=0,
        data_type="transactions",
        status=status,
        imported_row_count=0,
        failed_row_count=0,
        duplicate_row_count=0,
        import_errors=[],
        import_warnings=[],
    )
    defaults.update(kwargs)
    return ImportSession(**defaults)


@pytest.mark.unit
class TestImportSessionTransitions:
    """Transitions only move forward."""

    @pytest.mark.parametrize(
        "start,target",
        [
            (ImportStatus.PENDING, ImportStatus.ANALYZING),
            (ImportStatus.ANALYZING, ImportStatus.ANALYZING),
            (ImportStatus.ANALYZING, ImportStatus.READY),
            (ImportStatus.READY, ImportStatus.READY),
            (ImportStatus.READY, ImportStatus.IMPORTING),
            (ImportStatus.IMPORTING, ImportStatus.COMPLETED),
            (ImportStatus.IMPORTING, ImportStatus.FAILED),
            (ImportStatus.ANALYZING, ImportStatus.FAILED),
        ],
    )
    def test_allowed(self, start, target):
        import_session = make_session(status=start)

        import_session.transition_to(target)

        assert import_session.status == target

    @pytest.mark.parametrize(
        "start,target",
        [
            (ImportStatus.PENDING, ImportStatus.READY),
            (ImportStatus.PENDING, ImportStatus.IMPORTING),
            (ImportStatus.ANALYZING, ImportStatus.IMPORTING),
            (ImportStatus.READY, ImportStatus.ANALYZING),
            (ImportStatus.IMPORTING, ImportStatus.READY),
            (ImportStatus.COMPLETED, ImportStatus.IMPORTING),
            (ImportStatus.COMPLETED, ImportStatus.FAILED),
            (ImportStatus.FAILED, ImportStatus.ANALYZING),
        ],
    )
    def test_rejected_without_change(self, start, target):
        import_session = make_session(status=start)

        with pytest.raises(InvalidStateError) as exc_info:
            import_session.transition_to(target)

        assert import_session.status == start
        assert exc_info.value.current_status == start.value
        assert exc_info.value.status_code == 409

    def test_terminal_states(self):
        assert ImportStatus.COMPLETED.is_terminal
        assert ImportStatus.FAILED.is_terminal
        assert not ImportStatus.READY.is_terminal

    def test_effective_mappings_prefers_confirmed(self):
        import_session = make_session(
            classification={"column_mappings": {"Date": "date"}},
            user_confirmed_mappings={"Posted": "date"},
        )

        assert import_session.effective_mappings == {"Posted": "date"}

    def test_effective_mappings_falls_back_to_classification(self):
        import_session = make_session(classification={"column_mappings": {"Date": "date"}})

        assert import_session.effective_mappings == {"Date": "date"}
        assert make_session().effective_mappings == {}


@pytest.mark.unit
class TestAggregateResult:
    """Test folding execution results into the session."""

    def test_completes_session_with_counters(self):
        import_session = make_session(status=ImportStatus.IMPORTING)
        result = ExecutionResult(
            success_count=8,
            error_count=1,
            duplicate_count=1,
            errors=["Row 3: Invalid amount 'x'"],
            warnings=["Account 'A' already exists, skipped"],
            created_payees=4,
        )

        summary = aggregate_result(import_session, result)

        assert import_session.status == ImportStatus.COMPLETED
        assert import_session.completed_at is not None
        assert import_session.imported_row_count == 8
        assert import_session.failed_row_count == 1
        assert import_session.duplicate_row_count == 1
        assert summary.message == "Successfully imported 8 transactions (1 failed) (1 duplicates skipped)"
        assert summary.created_payees == 4
        assert summary.total_errors == 1

    def test_clean_run_message(self):
        import_session = make_session(status=ImportStatus.IMPORTING, data_type="categories")

        summary = aggregate_result(import_session, ExecutionResult(success_count=3))

        assert summary.message == "Successfully imported 3 categories"

    def test_returned_errors_are_capped(self, monkeypatch):
        monkeypatch.setattr("app.config.settings.IMPORT_MAX_ERRORS_RETURNED", 2)
        import_session = make_session(status=ImportStatus.IMPORTING)
        errors = [f"Row {n}: bad" for n in range(1, 6)]

        summary = aggregate_result(import_session, ExecutionResult(error_count=5, errors=errors))

        assert summary.errors == errors[:2]
        assert summary.total_errors == 5
        assert import_session.import_errors == errors

    def test_requires_importing_state(self):
        import_session = make_session(status=ImportStatus.READY)

        with pytest.raises(InvalidStateError):
            aggregate_result(import_session, ExecutionResult())
