import logging
import os
from datetime import datetime, timezone
from typing import IO, Iterator, List, Optional, Tuple

from ocgen.models import GenerationEvent

logger = logging.getLogger("ocgen")


class EventLog:
    """
    Ordered record of the generation events of one run.

    Events are stamped with a sequence number as they are appended and, once a
    file is attached, written through as JSON lines so an aborted run still
    leaves its audit trail behind. The file stays open until ``close()``.
    """

    def __init__(self):
        self._events: List[GenerationEvent] = []
        self.path: Optional[str] = None
        self._file: Optional[IO[str]] = None

    def attach_file(self, directory: str, name: str) -> str:
        os.makedirs(directory, exist_ok=True)
        self.close()
        self.path = os.path.join(directory, name)
        # Line buffered so every event reaches disk as it arrives
        self._file = open(self.path, "a", encoding="utf-8", buffering=1)
        logger.info(f"[EventLog] Writing generation events to {self.path}")
        return self.path

    def append(self, event: GenerationEvent) -> GenerationEvent:
        stamped = event.model_copy(
            update={
                "sequence": len(self._events) + 1,
                "received_at": datetime.now(timezone.utc),
            }
        )
        self._events.append(stamped)
        if self._file is not None:
            self._file.write(stamped.model_dump_json() + "\n")
        return stamped

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None

    @property
    def events(self) -> Tuple[GenerationEvent, ...]:
        return tuple(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[GenerationEvent]:
        return iter(list(self._events))
