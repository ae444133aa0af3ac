import logging
import threading
from datetime import datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from pokedex import ReferenceDataCache

logger = logging.getLogger(__name__)


class DailyRefreshScheduler:
    """Runs the reference-data refresh once a day at a fixed local time."""

    def __init__(
        self,
        cache: ReferenceDataCache,
        hour: int = 3,
        minute: int = 0,
        timezone_name: str = "America/New_York",
        on_reloaded: Callable[[], None] | None = None,
    ):
        self.cache = cache
        self.hour = hour
        self.minute = minute
        self.tz = ZoneInfo(timezone_name)
        self.on_reloaded = on_reloaded
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def next_run(self, now: datetime | None = None) -> datetime:
        now = now.astimezone(self.tz) if now else datetime.now(self.tz)
        candidate = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def run_once(self) -> bool:
        """One refresh cycle; returns whether the reference data changed."""
        logger.info("⏰ Running scheduled daily update check...")
        self.cache.record_scheduled_run("Running")
        try:
            changed = self.cache.refresh_if_stale()
            if changed:
                logger.info("Data was updated, reprocessing and reloading all data...")
                self.cache.load()
                if self.on_reloaded is not None:
                    self.on_reloaded()
        except Exception:
            logger.exception("❌ An error occurred during the scheduled daily update")
            self.cache.record_scheduled_run("Failed")
            return False

        health = self.cache.get_health_check_data()
        failed = [k for k, v in health.items() if k != "cron" and v.get("status") == "Failed"]
        if failed:
            logger.warning(f"Scheduled check finished with failures: {', '.join(failed)}")
            self.cache.record_scheduled_run("Failed")
        else:
            logger.info("Scheduled check finished successfully.")
            self.cache.record_scheduled_run("Success")
        return changed

    def _loop(self) -> None:
        while not self._stop.is_set():
            wait = (self.next_run() - datetime.now(self.tz)).total_seconds()
            if self._stop.wait(max(wait, 0)):
                break
            self.run_once()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="reference-refresh", daemon=True
        )
        self._thread.start()
        logger.info(
            f"📅 Daily data update scheduled at {self.hour:02d}:{self.minute:02d} ({self.tz.key})."
        )

    def stop(self, timeout: float | None = 5) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
