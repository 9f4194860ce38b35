"""Message id generation."""

import itertools
import threading
import time
import uuid


class MessageIdGenerator:
    """
    Produces ids of the form ``msg_<epoch_ms>_<random9>_<sequence>``.

    The sequence counter makes ids unique within one generator even when
    the clock and the random suffix collide.
    """

    def __init__(self, prefix: str = "msg"):
        self.prefix = prefix
        self._sequence = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> str:
        with self._lock:
            sequence = next(self._sequence)
        timestamp = int(time.time() * 1000)
        return f"{self.prefix}_{timestamp}_{uuid.uuid4().hex[:9]}_{sequence}"
