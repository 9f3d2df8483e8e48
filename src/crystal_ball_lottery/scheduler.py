from __future__ import annotations

import logging
import threading
from typing import List

from .distributor import Distributor

log = logging.getLogger(__name__)


class RoundScheduler:
    """
    Fires a round every interval. At most one round runs at a time: a tick
    that arrives while a round is in flight is dropped, not queued.
    """

    def __init__(self, distributor: Distributor, interval_s: float) -> None:
        self.distributor = distributor
        self.interval_s = interval_s
        self._round_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._round_lock.locked()

    def trigger(self) -> bool:
        """Run one round now. Returns False if another round was still running."""
        if not self._round_lock.acquire(blocking=False):
            log.warning("Previous round still in flight, skipping this trigger.")
            return False
        try:
            log.info("Scheduled crystal ball distribution task triggered.")
            self.distributor.schedule_next()
            self.distributor.run_round()
        except Exception:
            log.exception("Crystal ball round failed.")
        finally:
            self._round_lock.release()
        return True

    def run_forever(self, stop: threading.Event) -> None:
        """Tick until stop is set, then wait for the round in flight to finish."""
        log.info("Round scheduler started (every %.0f s).", self.interval_s)
        workers: List[threading.Thread] = []
        while not stop.wait(self.interval_s):
            # a tick never waits on the previous round
            worker = threading.Thread(target=self.trigger, name="crystal-ball-round")
            worker.start()
            workers = [w for w in workers if w.is_alive()]
            workers.append(worker)
        if self.busy:
            log.info("Waiting for the round in flight before stopping.")
        for worker in workers:
            worker.join()
        log.info("Round scheduler stopped.")
