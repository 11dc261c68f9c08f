"""CRUD operations for import sessions."""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.import_session import ImportSession, ImportStatus
from app.services.csv_import.row_parser import ParsedCSV


class ImportSessionCRUD:
    """CRUD operations for ImportSession model."""

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: UUID,
        file_name: str,
        file_size_bytes: int,
        parsed: ParsedCSV,
    ) -> ImportSession:
        """Persist a freshly parsed file as a pending session."""
        import_session = ImportSession(
            user_id=user_id,
            file_name=file_name,
            file_size_bytes=file_size_bytes,
            raw_rows=parsed.rows,
            preview_rows=parsed.rows[: settings.IMPORT_PREVIEW_ROWS],
            detected_columns=parsed.headers,
            total_rows=parsed.total_rows,
            status=ImportStatus.PENDING,
            import_errors=[],
            import_warnings=[],
        )
        db.add(import_session)
        await db.commit()
        await db.refresh(import_session)
        return import_session

    @staticmethod
    async def get_for_user(
        db: AsyncSession, import_id: UUID, user_id: UUID
    ) -> Optional[ImportSession]:
        """Get a session only if the user owns it."""
        result = await db.execute(
            select(ImportSession).where(
                ImportSession.id == import_id, ImportSession.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        db: AsyncSession,
        user_id: UUID,
        page: int = 1,
        limit: int = 10,
        status: Optional[ImportStatus] = None,
    ) -> Tuple[List[ImportSession], int]:
        """Newest-first page of a user's sessions and the total matching count."""
        conditions = [ImportSession.user_id == user_id]
        if status is not None:
            conditions.append(ImportSession.status == status)

        count_result = await db.execute(
            select(func.count()).select_from(ImportSession).where(*conditions)
        )
        total = count_result.scalar_one()

        result = await db.execute(
            select(ImportSession)
            .where(*conditions)
            .order_by(ImportSession.created_at.desc(), ImportSession.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def delete(db: AsyncSession, import_session: ImportSession) -> None:
        await db.delete(import_session)
        await db.commit()


# Create singleton instances
import_session_crud = ImportSessionCRUD()
