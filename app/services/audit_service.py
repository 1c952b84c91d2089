"""Best-effort audit trail and conflict diagnostics.

Records are written after the business transaction has been committed or
rolled back. A failure here is logged and swallowed so it can never undo or
block an enrollment decision.
"""

from typing import Any, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit import AuditLog
from app.models.conflict import ConflictType, EnrollmentConflict
from core.exceptions.base import NotFoundException
from core.logging import get_logger

logger = get_logger(__name__)


class AuditService:
    def __init__(
        self,
        db_session: AsyncSession,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ):
        self.db_session = db_session
        self.ip_address = ip_address
        self.user_agent = user_agent

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[str],
        user_id: Optional[str] = None,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.db_session.add(
            AuditLog(
                user_id=user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                old_value=old_value,
                new_value=new_value,
                ip_address=self.ip_address,
                user_agent=self.user_agent[:500] if self.user_agent else None,
            )
        )
        await self._flush_best_effort(f"audit {action} on {entity_type} {entity_id}")

    async def record_conflict(
        self,
        student_id: str,
        attempted_activity_id: str,
        conflict_type: ConflictType,
        conflicting_activity_id: Optional[str] = None,
        conflicting_schedule_id: Optional[str] = None,
    ) -> None:
        await self.record_conflicts(
            [(student_id, attempted_activity_id, conflict_type, conflicting_activity_id, conflicting_schedule_id)]
        )

    async def record_conflicts(self, rows: Iterable[tuple]) -> None:
        """Write several conflict diagnostics in one commit.

        Each row is ``(student_id, attempted_activity_id, conflict_type,
        conflicting_activity_id, conflicting_schedule_id)``.
        """
        rows = list(rows)
        if not rows:
            return
        for student_id, attempted_activity_id, conflict_type, other_activity_id, other_schedule_id in rows:
            self.db_session.add(
                EnrollmentConflict(
                    student_id=student_id,
                    attempted_activity_id=attempted_activity_id,
                    conflicting_activity_id=other_activity_id,
                    conflicting_schedule_id=other_schedule_id,
                    conflict_type=conflict_type,
                )
            )
        await self._flush_best_effort(f"{len(rows)} conflict record(s)")

    async def resolve_conflict(
        self, conflict_id: str, resolution_notes: Optional[str], user_id: str
    ) -> EnrollmentConflict:
        """Mark a diagnostic as reviewed (admin)."""
        conflict = await EnrollmentConflict.get_by_id(self.db_session, conflict_id)
        if not conflict:
            raise NotFoundException(message="Conflict record not found")

        conflict.resolved = True
        conflict.resolution_notes = resolution_notes
        await self.db_session.commit()
        await self.db_session.refresh(conflict)

        await self.record(
            action="conflict.resolved",
            entity_type="enrollment_conflict",
            entity_id=conflict_id,
            user_id=user_id,
            new_value={"resolution_notes": resolution_notes},
        )
        return conflict

    async def _flush_best_effort(self, what: str) -> None:
        try:
            await self.db_session.commit()
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            logger.warning(f"Failed to write {what}: {e}")
