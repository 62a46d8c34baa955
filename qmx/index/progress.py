"""
Progress events and cooperative cancellation for index runs.

An index run emits at most one ``plan`` event (embed mode only), one
``doc`` event per embedded document and exactly one ``done`` event, in
that order.
"""

import threading
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from ..models.document import IndexStats


@dataclass(frozen=True)
class PlanEvent:
    documents: int
    chunks: int
    bytes: int
    split_documents: int
    model: str
    stage: str = field(default="plan", init=False)


@dataclass(frozen=True)
class DocEvent:
    index: int
    total: int
    display_path: str
    chunks: int
    stage: str = field(default="doc", init=False)


@dataclass(frozen=True)
class DoneEvent:
    stats: IndexStats
    stage: str = field(default="done", init=False)


ProgressEvent = Union[PlanEvent, DocEvent, DoneEvent]
ProgressSink = Callable[[ProgressEvent], None]


class CancelToken:
    """
    Cancellation flag polled by the indexer before each collection and file.

    ``should_stop`` is an optional extra predicate consulted on every poll;
    once either the flag or the predicate reports a stop, the token stays
    cancelled.
    """

    def __init__(self, should_stop: Optional[Callable[[], bool]] = None):
        self._should_stop = should_stop
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def stop_requested(self) -> bool:
        if self._event.is_set():
            return True
        if self._should_stop is not None and self._should_stop():
            self._event.set()
            return True
        return False
