from collections import deque
from typing import Deque, Iterable, List, Optional

from models import Transaction


class SettlementQueue:
    """
    FIFO working queue for one replay run.
    Transactions whose reference is not known yet go back to the end.
    """

    def __init__(self, messages: Iterable[Transaction] = ()):
        self._queue: Deque[Transaction] = deque(messages)

    def consume_message(self) -> Optional[Transaction]:
        """Pop the next message, or None if the queue is empty."""
        if not self._queue:
            return None
        return self._queue.popleft()

    def requeue_message(self, message: Transaction) -> None:
        """Defer message behind everything currently queued."""
        self._queue.append(message)

    def is_empty(self) -> bool:
        return not self._queue

    def drain_unresolved(self) -> List[Transaction]:
        """Empty the queue and return what was left, in queue order."""
        messages = list(self._queue)
        self._queue.clear()
        return messages

    def __len__(self) -> int:
        return len(self._queue)
