"""Running blocking, stoppable functions side by side."""

from __future__ import annotations

import threading


def run_concurrently_until(stop_event: threading.Event, *args) -> None:
    """Run each function in ``args`` in its own thread with ``stop_event``.

    Blocks until ``stop_event`` is set and every function has returned.
    """
    threads = [
        threading.Thread(target=func, args=(stop_event,), daemon=True) for func in args
    ]
    for thread in threads:
        thread.start()
    stop_event.wait()
    for thread in threads:
        thread.join()