"""EventSink that writes operation events to the ``hybridapi.events`` logger."""

import logging

from hybridapi.application.interfaces import EventSink, OperationEvent
from hybridapi.domain.exceptions import HybridApiError
from hybridapi.infrastructure.logging.colored_logger import EngineLogger, EngineStage

EVENTS_LOGGER = "hybridapi.events"


class LoggingEventSink(EventSink):
    """Logs every engine operation; colored output when ``colored`` is set."""

    def __init__(self, name: str = EVENTS_LOGGER, *, colored: bool = True):
        self._log = EngineLogger(name)
        self._colored = colored

    def operation_started(self, event: OperationEvent) -> None:
        message = f"{event.operation} {event.entity_type}"
        if self._colored:
            self._log.step_start(EngineStage.ROUTER, message, **{"mode": event.mode, **event.detail})
        else:
            self._log.logger.debug("started %s mode=%s %s", message, event.mode, event.detail)

    def operation_completed(self, event: OperationEvent) -> None:
        message = f"{event.operation} {event.entity_type}"
        duration = f"{event.duration_ms:.1f}ms" if event.duration_ms is not None else "-"
        if self._colored:
            self._log.step_complete(
                EngineStage.for_source(event.source), message, mode=event.mode, source=event.source, took=duration
            )
        else:
            self._log.logger.info(
                "completed %s mode=%s source=%s took=%s", message, event.mode, event.source, duration
            )

    def operation_failed(self, event: OperationEvent) -> None:
        message = f"{event.operation} {event.entity_type}"
        # Expected engine errors (not found, validation, remote 4xx) are warnings.
        level = logging.WARNING if isinstance(event.error, HybridApiError) else logging.ERROR
        if self._colored:
            self._log.step_error(EngineStage.for_source(event.source), message, error=event.error, level=level)
        else:
            self._log.logger.log(level, "failed %s mode=%s: %r", message, event.mode, event.error)
