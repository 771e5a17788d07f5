import hmac
import logging
from datetime import date, timedelta

from ..domain.errors import AccessDeniedError
from ..domain.repositories import (
    AccessCodeRepository,
    BlockedDateRepository,
    InstructorRepository,
    NotificationRepository,
)
from ..models import BlockedDate, Instructor, Notification
from ..utils.auth import ADMIN_SUBJECT, create_access_token

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "date unavailable"
DEFAULT_NOTIFICATION_LIMIT = 100


async def sync_access_code(access_repo: AccessCodeRepository, *, code: str) -> None:
    """Startup only: the configured code replaces whatever is stored."""
    await access_repo.store(code)
    logger.info("admin access code synchronised from configuration")


async def authenticate_admin(
    access_repo: AccessCodeRepository,
    *,
    code: str,
    secret: str,
    algorithm: str,
    ttl: timedelta,
) -> str:
    stored = await access_repo.get_code()
    if stored is None or not hmac.compare_digest(stored.encode(), code.encode()):
        raise AccessDeniedError("access denied")
    return create_access_token(secret=secret, subject=ADMIN_SUBJECT, algorithm=algorithm, expires_delta=ttl)


async def list_instructors(instructor_repo: InstructorRepository) -> list[Instructor]:
    return await instructor_repo.list_all()


async def add_instructor(instructor_repo: InstructorRepository, *, name: str, email: str) -> Instructor:
    return await instructor_repo.create(name=name.strip(), email=email)


async def remove_instructor(instructor_repo: InstructorRepository, *, instructor_id: int) -> bool:
    return await instructor_repo.delete(instructor_id)


async def list_blocked_dates(blocked_repo: BlockedDateRepository) -> list[BlockedDate]:
    return await blocked_repo.list_all()


async def block_date(blocked_repo: BlockedDateRepository, *, blocked_on: date, reason: str | None) -> BlockedDate:
    return await blocked_repo.create(blocked_on=blocked_on, reason=(reason or "").strip() or DEFAULT_BLOCK_REASON)


async def unblock_date(blocked_repo: BlockedDateRepository, *, blocked_on: date) -> bool:
    return await blocked_repo.delete(blocked_on)


async def list_notifications(
    notification_repo: NotificationRepository,
    *,
    limit: int = DEFAULT_NOTIFICATION_LIMIT,
) -> list[Notification]:
    return await notification_repo.list_recent(limit)


async def mark_notification_read(notification_repo: NotificationRepository, *, notification_id: int) -> None:
    await notification_repo.mark_read(notification_id)


async def mark_all_notifications_read(notification_repo: NotificationRepository) -> int:
    return await notification_repo.mark_all_read()
