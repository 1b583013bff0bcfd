"""Outbox Scheduler - Drains the notification outbox

Supports multi-server deployment: every notification is locked in MongoDB
before it is sent, so each one is processed by a single worker. Stale locks
left by crashed workers are released periodically.
"""
import os
import socket
from typing import Dict, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..repositories.notification_repo import NotificationRepository
from ..services.notification_service import NotificationService
from ..utils.logger import get_logger
from ..utils.idgen import generate_correlation_id, generate_id
from ..utils.time import utc_now

logger = get_logger(__name__)


class OutboxScheduler:
    """
    APScheduler jobs sending pending notifications

    Responsibilities:
    - Send pending notifications (retries are picked up once next_retry_at passes)
    - Clean up stale locks from crashed processes
    """

    def __init__(
        self,
        notification_repo: Optional[NotificationRepository] = None,
        notification_service: Optional[NotificationService] = None
    ):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.notification_repo = notification_repo or NotificationRepository()
        self.notification_service = notification_service or NotificationService(repo=self.notification_repo)
        self._is_running = False
        self._server_id = self._generate_server_id()
        self._process_count = 0

    def _generate_server_id(self) -> str:
        """Unique worker identifier used as lock owner"""
        return f"{socket.gethostname()}-{os.getpid()}-{generate_id()[:8]}"

    def start(self) -> None:
        """Start the scheduler"""
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.process_outbox,
            trigger=IntervalTrigger(seconds=settings.scheduler_interval_seconds),
            id="process_notifications",
            name="Process pending notifications",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.cleanup_stale_locks,
            trigger=IntervalTrigger(minutes=5),
            id="cleanup_stale_locks",
            name="Cleanup stale notification locks",
            replace_existing=True
        )

        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Outbox scheduler started on {self._server_id} "
            f"(interval {settings.scheduler_interval_seconds}s)"
        )

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Outbox scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def process_outbox(self, limit: int = 50) -> Dict[str, int]:
        """
        Send one batch of pending notifications

        Returns counts of sent, failed and skipped (locked elsewhere) rows.
        """
        correlation_id = generate_correlation_id()
        start_time = utc_now()
        counts = {"sent": 0, "failed": 0, "skipped": 0}

        notifications = self.notification_repo.get_pending_notifications(limit=limit)
        if not notifications:
            return counts

        logger.debug(f"[{correlation_id}] {len(notifications)} pending notifications")

        for notification in notifications:
            lock_id = f"{self._server_id}-{generate_id()[:8]}"

            if not self.notification_repo.acquire_lock(
                notification.notification_id,
                lock_id,
                lock_duration_seconds=settings.notification_lock_duration_seconds
            ):
                counts["skipped"] += 1
                continue

            try:
                if await self.notification_service.send_notification(notification):
                    counts["sent"] += 1
                    self._process_count += 1
                else:
                    counts["failed"] += 1
            except Exception as e:
                counts["failed"] += 1
                logger.error(
                    f"Error processing notification {notification.notification_id}: {e}",
                    extra={"notification_id": notification.notification_id}
                )
            finally:
                self.notification_repo.release_lock(notification.notification_id, lock_id)

        duration_ms = (utc_now() - start_time).total_seconds() * 1000
        logger.info(
            f"[{correlation_id}] Notification cycle complete: {counts['sent']} sent, "
            f"{counts['failed']} failed, {counts['skipped']} skipped in {duration_ms:.0f}ms"
        )
        return counts

    async def cleanup_stale_locks(self) -> int:
        """Release locks whose holder is presumed dead"""
        cleaned = self.notification_repo.cleanup_stale_locks(
            max_lock_age_minutes=settings.stale_lock_cleanup_minutes
        )
        if cleaned:
            logger.info(f"Cleaned up {cleaned} stale notification locks")
        return cleaned


# Global scheduler instance
_scheduler: Optional[OutboxScheduler] = None


def get_scheduler() -> OutboxScheduler:
    """Get or create scheduler instance"""
    global _scheduler
    if _scheduler is None:
        _scheduler = OutboxScheduler()
    return _scheduler


def start_scheduler() -> None:
    """Start the global scheduler"""
    get_scheduler().start()


def stop_scheduler() -> None:
    """Stop the global scheduler"""
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
