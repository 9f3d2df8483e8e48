from __future__ import annotations

import threading

from crystal_ball_lottery.scheduler import RoundScheduler


class BlockingDistributor:
    def __init__(self) -> None:
        self.started = threading.Event()
        self.release = threading.Event()
        self.rounds = 0
        self.running = 0
        self.max_running = 0
        self.scheduled = 0
        self._lock = threading.Lock()

    def schedule_next(self) -> None:
        self.scheduled += 1

    def run_round(self):
        with self._lock:
            self.rounds += 1
            self.running += 1
            self.max_running = max(self.max_running, self.running)
        self.started.set()
        self.release.wait(5)
        with self._lock:
            self.running -= 1


class ExplodingDistributor:
    def schedule_next(self) -> None:
        pass

    def run_round(self):
        raise KeyError("boom")


def test_trigger_during_round_is_skipped():
    d = BlockingDistributor()
    scheduler = RoundScheduler(d, interval_s=60)

    first = threading.Thread(target=scheduler.trigger)
    first.start()
    assert d.started.wait(5)

    assert scheduler.busy
    assert scheduler.trigger() is False
    assert scheduler.trigger() is False

    d.release.set()
    first.join(5)
    assert d.rounds == 1
    assert d.max_running == 1
    assert not scheduler.busy


def test_trigger_runs_again_once_idle():
    d = BlockingDistributor()
    d.release.set()
    scheduler = RoundScheduler(d, interval_s=60)
    assert scheduler.trigger() is True
    assert scheduler.trigger() is True
    assert d.rounds == 2
    assert d.scheduled == 2


def test_failed_round_releases_the_lock():
    scheduler = RoundScheduler(ExplodingDistributor(), interval_s=60)
    assert scheduler.trigger() is True
    assert not scheduler.busy
    assert scheduler.trigger() is True


def test_run_forever_ticks_until_stopped():
    d = BlockingDistributor()
    d.release.set()
    scheduler = RoundScheduler(d, interval_s=0.01)
    stop = threading.Event()

    loop = threading.Thread(target=scheduler.run_forever, args=(stop,))
    loop.start()
    assert d.started.wait(5)
    stop.set()
    loop.join(5)

    assert not loop.is_alive()
    assert d.rounds >= 1
    assert d.max_running == 1


def test_run_forever_never_overlaps_slow_rounds():
    d = BlockingDistributor()
    scheduler = RoundScheduler(d, interval_s=0.005)
    stop = threading.Event()

    loop = threading.Thread(target=scheduler.run_forever, args=(stop,))
    loop.start()
    assert d.started.wait(5)
    # several ticks fire while the first round is stuck
    threading.Event().wait(0.1)
    stop.set()

    assert d.rounds == 1
    assert d.max_running == 1
    d.release.set()
    loop.join(5)
    assert not loop.is_alive()


def test_stop_waits_for_round_in_flight():
    d = BlockingDistributor()
    scheduler = RoundScheduler(d, interval_s=0.01)
    stop = threading.Event()

    loop = threading.Thread(target=scheduler.run_forever, args=(stop,))
    loop.start()
    assert d.started.wait(5)
    stop.set()

    loop.join(0.2)
    assert loop.is_alive()
    assert scheduler.busy

    d.release.set()
    loop.join(5)
    assert not loop.is_alive()
    assert not scheduler.busy
    assert d.running == 0
