"""Access request lifecycle: submission, approval and rejection.

Requests move through a small state machine:

    PENDING --approve--> APPROVED
    PENDING --reject-->  REJECTED

APPROVED and REJECTED are terminal. Every mutation rewrites the whole
request collection through the RequestStore while holding the store lock,
so concurrent callers inside one process cannot lose each other's updates.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable, Mapping

from ucaccess.core.errors import InvalidTransitionError, ValidationError
from ucaccess.core.models import AccessRequest, CatalogNode, Identity, RequestStatus
from ucaccess.core.storage import RequestStore

logger = logging.getLogger(__name__)

TRANSITIONS: Mapping[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is allowed."""
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(current, target)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class RequestIdGenerator:
    """Produces ``REQ-<epoch ms>`` ids that strictly increase per process."""

    def __init__(self, clock_ms: Callable[[], int] = _now_ms) -> None:
        self._clock_ms = clock_ms
        self._last = 0
        self._lock = threading.Lock()

    def next_id(self) -> tuple[str, int]:
        """Return a fresh ``(id, timestamp_ms)`` pair."""
        with self._lock:
            now = self._clock_ms()
            stamp = now if now > self._last else self._last + 1
            self._last = stamp
        return f"REQ-{stamp}", now


class AccessWorkflow:
    """Submit, approve and reject access requests against a RequestStore."""

    def __init__(
        self,
        store: RequestStore,
        *,
        ids: RequestIdGenerator | None = None,
    ) -> None:
        self.store = store
        self.ids = ids or RequestIdGenerator()

    def list_requests(self) -> list[AccessRequest]:
        return self.store.fetch_all()

    def submit(
        self,
        selected_nodes: Iterable[CatalogNode],
        permissions: Iterable[str],
        justification: str,
        requester: Identity,
    ) -> list[AccessRequest]:
        """
        Create one PENDING request per selected catalog node.

        New requests are placed before all existing ones (newest first) and
        the whole collection is persisted in a single write. Only the
        selection is validated; empty permissions or a blank justification
        are accepted.

        Args:
            selected_nodes: Catalog nodes the requester wants access to.
            permissions: Privilege tags requested on every node.
            justification: Free-text reason.
            requester: Identity submitting the request.

        Returns:
            The created requests, in the order they were created.

        Raises:
            ValidationError: If no node is selected.
        """
        nodes = list(selected_nodes)
        if not nodes:
            raise ValidationError("Please select at least one data object.")
        perms = frozenset(permissions)

        with self.store.lock:
            existing = self.store.fetch_all()
            created: list[AccessRequest] = []
            for node in nodes:
                request_id, stamp = self.ids.next_id()
                created.append(
                    AccessRequest(
                        id=request_id,
                        user_id=requester.id,
                        user_name=requester.name,
                        object_id=node.id,
                        object_name=node.name,
                        object_type=node.type.value,
                        permissions=perms,
                        status=RequestStatus.PENDING,
                        justification=justification or "",
                        timestamp=stamp,
                    )
                )
            self.store.save_all(list(reversed(created)) + existing)

        logger.info(
            "Submitted %d request(s) for %s", len(created), requester.id
        )
        return created

    def approve(self, request: AccessRequest) -> AccessRequest:
        """Move a PENDING request to APPROVED and persist the collection."""
        return self._transition(request, RequestStatus.APPROVED)

    def reject(self, request: AccessRequest) -> AccessRequest:
        """Move a PENDING request to REJECTED and persist the collection."""
        return self._transition(request, RequestStatus.REJECTED)

    def _transition(self, request: AccessRequest, target: RequestStatus) -> AccessRequest:
        with self.store.lock:
            requests = self.store.fetch_all()
            stored = next((r for r in requests if r.id == request.id), None)
            if stored is None:
                raise ValidationError(f"Request {request.id} does not exist.")
            check_transition(stored.status, target)

            stored.status = target
            self.store.save_all(requests)

        request.status = target
        logger.info("Request %s %s", request.id, target.value.lower())
        return request
