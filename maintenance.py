"""
Maintenance mode
Keeps the `maintenance_mode` system flag cached in memory so the request gate
never has to hit the database, and pushes changes in as soon as they happen.

The flag can change in two ways:
1. Through the Creator API, which calls set_active() and updates the cache immediately
2. Directly in the database (another worker, a CLI run); the optional watcher
   thread picks those up every MAINTENANCE_POLL_SECONDS
"""

import logging
import threading
import time
from typing import Callable, List, Optional

from models import SystemFlag, MAINTENANCE_FLAG

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'edusync_maintenance'


def get_maintenance_flag(db_session, create=False):
    flag = db_session.query(SystemFlag).filter_by(key=MAINTENANCE_FLAG).first()
    if not flag and create:
        flag = SystemFlag(key=MAINTENANCE_FLAG, is_active=False)
        db_session.add(flag)
        db_session.flush()
    return flag


class MaintenanceMonitor:
    """In-memory view of the maintenance flag, backed by a Database"""

    def __init__(self, database, poll_seconds: int = 30):
        self.database = database
        self.poll_seconds = poll_seconds
        self._active = False
        self._listeners: List[Callable[[bool], None]] = []
        self._lock = threading.Lock()
        self._watcher_thread: Optional[threading.Thread] = None
        self._watcher_running = False

    @property
    def is_active(self) -> bool:
        return self._active

    def subscribe(self, listener: Callable[[bool], None]):
        """Call `listener(is_active)` whenever the cached value changes"""
        self._listeners.append(listener)

    def _publish(self, active: bool):
        with self._lock:
            changed = active != self._active
            self._active = active
        if changed:
            logger.info(f"Maintenance mode {'enabled' if active else 'disabled'}")
            for listener in list(self._listeners):
                try:
                    listener(active)
                except Exception as e:
                    logger.error(f"Maintenance listener error: {e}")

    def refresh(self) -> bool:
        """Re-read the flag row and publish it"""
        session = self.database.session()
        try:
            flag = get_maintenance_flag(session)
            self._publish(bool(flag and flag.is_active))
        finally:
            session.close()
        return self._active

    def set_active(self, active: bool, db_session=None):
        """
        Persist the flag and update the cache

        Returns:
            tuple: (success, message)
        """
        session = db_session or self.database.session()
        try:
            flag = get_maintenance_flag(session, create=True)
            flag.is_active = bool(active)
            session.commit()
            self._publish(bool(active))
            return True, f"Maintenance mode {'enabled' if active else 'disabled'}"
        except Exception as e:
            session.rollback()
            logger.error(f"Error updating maintenance flag: {e}")
            return False, 'Failed to update maintenance mode. Please contact Creator - Shan'
        finally:
            if db_session is None:
                session.close()

    # ===== WATCHER THREAD =====

    def start_watcher(self):
        """Start a background thread that re-reads the flag periodically"""
        if self._watcher_running:
            logger.warning("Maintenance watcher is already running")
            return
        if self.poll_seconds <= 0:
            logger.warning("Maintenance watcher not started: poll interval must be positive")
            return

        self._watcher_running = True

        def watcher_loop():
            logger.info(f"Maintenance watcher started (checking every {self.poll_seconds}s)")
            while self._watcher_running:
                try:
                    self.refresh()
                except Exception as e:
                    logger.error(f"Maintenance watcher error: {e}")

                # Sleep in small increments to allow graceful shutdown
                for _ in range(self.poll_seconds):
                    if not self._watcher_running:
                        break
                    time.sleep(1)
            logger.info("Maintenance watcher stopped")

        self._watcher_thread = threading.Thread(target=watcher_loop, daemon=True)
        self._watcher_thread.start()

    def stop_watcher(self):
        self._watcher_running = False
        logger.info("Stopping maintenance watcher...")

    def is_watching(self) -> bool:
        return self._watcher_running


def get_monitor(app=None) -> MaintenanceMonitor:
    from flask import current_app
    app = app or current_app
    return app.extensions[EXTENSION_KEY]
