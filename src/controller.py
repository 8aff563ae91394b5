"""
Hosting loop for the node keeper: node watch, delayed work queue, workers.
"""

import heapq
import logging
import threading
import time
from typing import Dict, List, Optional, Set, Tuple

from kubernetes import watch

from nodekeeper import NodeKeeperReconciler

logger = logging.getLogger(__name__)

BACKOFF_BASE = 1.0
BACKOFF_MAX = 300.0


class WorkQueue:
    """
    Deduplicating work queue with delayed adds.

    A key is handed to at most one worker at a time. A key added while it is
    being processed is queued again once the worker calls done().
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._ready: List[str] = []
        self._queued: Set[str] = set()
        self._processing: Set[str] = set()
        self._dirty: Set[str] = set()
        self._delayed: List[Tuple[float, str]] = []
        # Earliest pending due time per delayed key; older heap entries are stale.
        self._due: Dict[str, float] = {}
        self._failures: Dict[str, int] = {}
        self._shutdown = False

    def add(self, key: str) -> None:
        with self._cond:
            if self._shutdown:
                return
            if key in self._processing:
                self._dirty.add(key)
                return
            if key not in self._queued:
                self._queued.add(key)
                self._ready.append(key)
                self._cond.notify()

    def add_after(self, key: str, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            due = time.monotonic() + delay
            pending = self._due.get(key)
            if pending is not None and pending <= due:
                return
            self._due[key] = due
            heapq.heappush(self._delayed, (due, key))
            self._cond.notify()

    def add_rate_limited(self, key: str) -> None:
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        self.add_after(key, min(BACKOFF_BASE * (2**failures), BACKOFF_MAX))

    def forget(self, key: str) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def _promote_due(self) -> Optional[float]:
        now = time.monotonic()
        while self._delayed and self._delayed[0][0] <= now:
            due, key = heapq.heappop(self._delayed)
            if self._due.get(key) != due:
                continue
            del self._due[key]
            if key in self._processing:
                self._dirty.add(key)
            elif key not in self._queued:
                self._queued.add(key)
                self._ready.append(key)
        return self._delayed[0][0] - now if self._delayed else None

    def get(self) -> Optional[str]:
        """Block until a key is ready; None once shut down."""
        with self._cond:
            while True:
                if self._shutdown:
                    return None
                wait = self._promote_due()
                if self._ready:
                    key = self._ready.pop(0)
                    self._queued.discard(key)
                    self._processing.add(key)
                    return key
                self._cond.wait(timeout=wait)

    def done(self, key: str) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._dirty.discard(key)
                self._queued.add(key)
                self._ready.append(key)
                self._cond.notify()

    def shutdown(self) -> None:
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._ready)


class NodeKeeperController:
    """Runs the node keeper reconciler for every node event."""

    def __init__(
        self,
        kube,
        reconciler: NodeKeeperReconciler,
        workers: int = 2,
        sync_period: int = 300,
    ):
        self.kube = kube
        self.reconciler = reconciler
        self.workers = workers
        self.sync_period = sync_period
        self.queue = WorkQueue()
        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    def process_next(self) -> bool:
        """
        Reconcile the next queued node.

        Returns:
            False once the queue is shut down
        """
        key = self.queue.get()
        if key is None:
            return False
        try:
            result = self.reconciler.reconcile(key)
        except Exception as e:
            logger.error(f"Error reconciling node {key}: {e}")
            self.queue.add_rate_limited(key)
        else:
            self.queue.forget(key)
            if result.requeue_after is not None:
                self.queue.add_after(key, result.requeue_after.total_seconds())
        finally:
            self.queue.done(key)
        return True

    def _worker(self) -> None:
        while self.process_next():
            pass

    def _watch_nodes(self) -> None:
        while not self._stop.is_set():
            w = watch.Watch()
            try:
                for event in w.stream(self.kube.core_v1.list_node, timeout_seconds=300):
                    if self._stop.is_set():
                        break
                    name = event["object"].metadata.name
                    logger.debug(f"Node event {event['type']} for {name}")
                    self.queue.add(name)
            except Exception as e:
                logger.error(f"Node watch failed: {e}; restarting in 5s")
                self._stop.wait(5)
            finally:
                w.stop()

    def _resync(self) -> None:
        while not self._stop.wait(self.sync_period):
            try:
                for node in self.kube.list_nodes():
                    self.queue.add(node.metadata.name)
            except Exception as e:
                logger.error(f"Periodic resync failed: {e}")

    def start(self) -> None:
        logger.info(f"Starting node keeper with {self.workers} worker(s)")
        targets = [self._watch_nodes, self._resync] + [self._worker] * self.workers
        for target in targets:
            t = threading.Thread(target=target, daemon=True)
            t.start()
            self._threads.append(t)

    def stop(self) -> None:
        logger.info("Stopping node keeper")
        self._stop.set()
        self.queue.shutdown()

    def run(self) -> None:
        """Start and block until interrupted."""
        self.start()
        try:
            while not self._stop.wait(1):
                pass
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
