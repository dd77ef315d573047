"""Per-client admission control for generation requests."""

import threading

from sitekernel.utils.logging import get_logger


logger = get_logger("admission")


class AdmissionRejected(Exception):
    """Client already holds the maximum number of in-flight requests."""

    def __init__(self, client_id: str, limit: int):
        super().__init__(
            f"Too many requests in progress (limit {limit}). "
            "Wait for the current generation to finish."
        )
        self.client_id = client_id
        self.limit = limit


class AdmissionController:
    """
    Bounded counter of in-flight requests keyed by client identity.

    Every successful `acquire` must be paired with exactly one `release`.
    """

    def __init__(self, max_concurrent_per_client: int):
        if max_concurrent_per_client < 1:
            raise ValueError("max_concurrent_per_client must be at least 1")
        self.limit = max_concurrent_per_client
        self._in_flight: dict[str, int] = {}
        self._lock = threading.Lock()

    def acquire(self, client_id: str) -> None:
        with self._lock:
            count = self._in_flight.get(client_id, 0)
            if count >= self.limit:
                logger.warning(f"Rejected request from {client_id}: {count} in flight")
                raise AdmissionRejected(client_id, self.limit)
            self._in_flight[client_id] = count + 1

    def release(self, client_id: str) -> None:
        with self._lock:
            count = self._in_flight.get(client_id, 0)
            if count <= 1:
                self._in_flight.pop(client_id, None)
            else:
                self._in_flight[client_id] = count - 1

    def in_flight(self, client_id: str) -> int:
        with self._lock:
            return self._in_flight.get(client_id, 0)
