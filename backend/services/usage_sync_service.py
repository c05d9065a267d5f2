"""
Relay Usage Sync Service
Periodically charges relay traffic against each user's quota.

Each cycle:
1. Reads the traffic counter of every active user's relay container
2. Adds the growth since the last observation to package_used (GB)
3. Stops the relay and deactivates the user once the quota is spent or the
   account has expired
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional, Dict, Any
from sqlalchemy.orm import Session

from models import User, USER_STATUS_ACTIVE, USER_STATUS_INACTIVE
from services.relay_container_manager import ContainerRuntimeError

logger = logging.getLogger(__name__)

BYTES_PER_GB = 1024 ** 3


def traffic_delta(previous: int, current: int) -> int:
    """Counter growth since last look; a smaller counter means the container restarted"""
    if current >= previous:
        return current - previous
    return current


class UsageSyncService:
    """Background service that meters relay traffic and enforces quotas."""

    DEFAULT_CHECK_INTERVAL_SECONDS = 300  # 5 minutes

    def __init__(
        self,
        get_db_session: Callable[[], Session],
        runtime,
        check_interval_seconds: int = None,
        on_user_suspended: Optional[Callable[[int, str], None]] = None
    ):
        """
        Initialize usage sync service.

        Args:
            get_db_session: Factory function to get database session
            runtime: Container runtime exposing get_traffic_bytes / stop
            check_interval_seconds: How often to sync usage
            on_user_suspended: Optional callback (user_id, reason)
        """
        self.get_db_session = get_db_session
        self.runtime = runtime
        self.check_interval = check_interval_seconds or self.DEFAULT_CHECK_INTERVAL_SECONDS
        self.on_user_suspended = on_user_suspended

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._sync_stats: Dict[str, Any] = {
            "users_synced": 0,
            "users_suspended": 0,
            "errors": 0,
            "last_check": None
        }

    async def start(self):
        """Start the sync background task."""
        if self._running:
            logger.warning("UsageSyncService is already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._sync_loop())
        logger.info(f"UsageSyncService started - check interval: {self.check_interval}s")

    async def stop(self):
        """Stop the sync background task."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("UsageSyncService stopped")

    async def _sync_loop(self):
        while self._running:
            try:
                await self.run_sync()
                self._sync_stats["last_check"] = datetime.utcnow().isoformat() + "Z"
            except Exception as e:
                logger.error(f"Error in usage sync loop: {e}", exc_info=True)

            await asyncio.sleep(self.check_interval)

    async def run_sync(self) -> int:
        """
        Execute one sync cycle.

        Docker stats and the database are blocking, so the cycle runs in a
        worker thread and the event loop keeps serving requests.

        Returns:
            Number of users suspended in this cycle
        """
        return await asyncio.to_thread(self._sync_cycle)

    def _sync_cycle(self) -> int:
        db = self.get_db_session()
        suspended = 0
        try:
            users = db.query(User).filter(
                User.service_id.isnot(None),
                User.status == USER_STATUS_ACTIVE
            ).all()

            for user in users:
                try:
                    if self._sync_user(db, user):
                        suspended += 1
                    db.commit()
                    self._sync_stats["users_synced"] += 1
                except ContainerRuntimeError as e:
                    logger.warning(f"Usage sync skipped user {user.id}: {e}")
                    self._sync_stats["errors"] += 1
                    db.rollback()
                except Exception as e:
                    logger.error(f"Usage sync failed for user {user.id}: {e}", exc_info=True)
                    self._sync_stats["errors"] += 1
                    db.rollback()

            if suspended > 0:
                logger.info(f"Usage sync completed: {len(users)} users, {suspended} suspended")
        finally:
            db.close()

        return suspended

    def _sync_user(self, db: Session, user: User) -> bool:
        """Charge traffic to one user; returns True if the user was suspended"""
        current = self.runtime.get_traffic_bytes(user.service_id)
        delta = traffic_delta(user.service_traffic_bytes or 0, current)

        user.service_traffic_bytes = current
        user.package_used = (user.package_used or 0.0) + delta / BYTES_PER_GB

        reason = self._suspend_reason(user)
        if reason is None:
            return False

        logger.warning(f"Suspending user {user.id} ({user.username}): {reason}")
        self.runtime.stop(user.service_id)
        user.status = USER_STATUS_INACTIVE
        self._sync_stats["users_suspended"] += 1

        if self.on_user_suspended:
            self.on_user_suspended(user.id, reason)
        return True

    @staticmethod
    def _suspend_reason(user: User) -> Optional[str]:
        if user.package_limit and user.package_used >= user.package_limit:
            return f"quota exhausted ({user.package_used:.2f}/{user.package_limit} GB)"
        if user.is_expired:
            return f"expired on {user.expired:%Y-%m-%d}"
        return None

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self._sync_stats,
            "running": self._running,
            "check_interval": self.check_interval,
        }
