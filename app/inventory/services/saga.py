"""Ordered do/undo steps for multi-write operations.

Each step runs immediately when :meth:`Saga.execute` is called and records its
compensation. When the ``with`` block exits with an error, compensations run
for the completed steps in reverse order and the original error propagates.
If any compensation fails, the saga aborts with ``abort_error`` chained to the
original error; the remaining compensations are still attempted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from app.inventory.core.error_catalog import AppError, SagaAborted
from app.inventory.core.logging import log_json
from app.inventory.core.metrics import metrics

logger = logging.getLogger("inventory.saga")


@dataclass
class _CompletedStep:
    name: str
    result: object
    compensation: Callable[[object], None] | None


@dataclass
class Saga:
    name: str
    context: dict = field(default_factory=dict)
    abort_error: type[AppError] = SagaAborted
    abort_event: str = "saga.aborted"
    before_compensation: Callable[[], None] | None = None
    _completed: list[_CompletedStep] = field(default_factory=list, init=False, repr=False)

    @property
    def completed_steps(self) -> list[str]:
        return [step.name for step in self._completed]

    def execute(
        self,
        step_name: str,
        action: Callable[[], object],
        compensation: Callable[[object], None] | None = None,
    ) -> object:
        result = action()
        self._completed.append(_CompletedStep(step_name, result, compensation))
        return result

    def __enter__(self) -> "Saga":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            return False
        if not isinstance(exc, Exception):
            return False
        self.compensate(exc)
        return False

    def compensate(self, error: Exception) -> None:
        if self.before_compensation is not None:
            self.before_compensation()
        failed: list[dict] = []
        undone = 0
        for step in reversed(self._completed):
            if step.compensation is None:
                continue
            try:
                step.compensation(step.result)
                undone += 1
            except Exception as undo_exc:
                if self.before_compensation is not None:
                    self.before_compensation()
                failed.append(
                    {
                        "step": step.name,
                        "error_class": undo_exc.__class__.__name__,
                        "error": str(undo_exc),
                    }
                )
        self._completed.clear()
        if undone:
            metrics.increment_saga_compensation(self.name, undone)
        error_code = error.code if isinstance(error, AppError) else error.__class__.__name__
        if not failed:
            if not undone:
                return
            log_json(
                logger,
                {
                    "event": "saga.compensated",
                    "saga": self.name,
                    "steps_undone": undone,
                    "cause": error_code,
                    **self.context,
                },
            )
            return
        metrics.increment_alerted_error(self.abort_error.definition.code)
        log_json(
            logger,
            {
                "event": self.abort_event,
                "code": self.abort_error.definition.code,
                "saga": self.name,
                "cause": error_code,
                "failed_compensations": failed,
                **self.context,
            },
            level=logging.ERROR,
        )
        raise self.abort_error(
            details={
                "saga": self.name,
                "cause": error_code,
                "failed_compensations": failed,
                **self.context,
            }
        ) from error
