"""Per-task finite-state workflow.

Each task carries its own workflow: the keys of ``transitions`` are the
states it may enter, and the rule attached to a state names the side effect
of entering it. There is no engine-wide state; the engine only moves one
record at a time from its current state to a requested one.

Entering a state:
  1. the state must be declared, otherwise the record is left untouched;
  2. a ``deleteOnEnter`` rule deletes the record, with no notification;
  3. otherwise a ``targetUrl`` rule dispatches a best-effort notification
     that is not awaited;
  4. the new state is persisted.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from relleno.core.errors import InvalidStateError, SideEffectError
from relleno.models.task import TaskRecord, TransitionOutcome, TransitionRule
from relleno.services.document_store import DocumentStore

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def dispatch(
        self,
        url: str,
        method: str,
        task_id: str,
        document: Any = None,
        send_document: bool = False,
    ) -> Any: ...


class WorkflowEngine:
    """Apply requested state transitions to stored tasks."""

    def __init__(self, store: DocumentStore, notifier: NotificationDispatcher | None = None) -> None:
        self._store = store
        self._notifier = notifier

    @staticmethod
    def available_states(record: TaskRecord) -> list[str]:
        return sorted(record.transitions)

    @staticmethod
    def resolve(record: TaskRecord, requested_state: str) -> TransitionRule:
        """Return the rule for ``requested_state`` or raise InvalidStateError."""
        rule = record.rule_for(requested_state)
        if rule is None:
            raise InvalidStateError(record.id, requested_state)
        return rule

    async def states(self, task_id: str) -> list[str]:
        """States the task may be moved into, for building the editor's actions."""
        record = await asyncio.to_thread(self._store.read, task_id)
        return self.available_states(record)

    async def request_transition(self, task_id: str, requested_state: str) -> TransitionOutcome:
        """Move a task into ``requested_state``.

        Re-entering the current state is allowed and repeats its side effect.

        Raises:
            TaskNotFoundError: If the task does not exist
            InvalidStateError: If the state is not declared for the task
            ConflictError: If the task stays locked past the lock timeout
            StorageError: On I/O failure
        """
        record = await asyncio.to_thread(self._store.read, task_id)
        rule = self.resolve(record, requested_state)
        previous = record.current_state

        if rule.delete_on_enter:
            if rule.target_url:
                logger.info(
                    "Task %s enters '%s' which deletes it; notification to %s is not sent",
                    task_id,
                    requested_state,
                    rule.target_url,
                )
            await asyncio.to_thread(self._store.delete, task_id)
            logger.info("Task %s deleted on entering '%s'", task_id, requested_state)
            return TransitionOutcome(task_id=task_id, state=requested_state, deleted=True)

        notified = self._notify(record, requested_state, rule)

        def _commit(current: TaskRecord) -> TaskRecord:
            self.resolve(current, requested_state)
            return current.model_copy(update={"current_state": requested_state})

        await asyncio.to_thread(self._store.update, task_id, _commit)
        logger.info("Task %s moved from '%s' to '%s'", task_id, previous, requested_state)
        return TransitionOutcome(task_id=task_id, state=requested_state, notified=notified)

    def _notify(self, record: TaskRecord, state: str, rule: TransitionRule) -> bool:
        if not rule.target_url:
            return False
        if self._notifier is None:
            logger.warning(
                "No notifier configured; skipping %s %s for task %s",
                rule.http_method,
                rule.target_url,
                record.id,
            )
            return False
        try:
            self._notifier.dispatch(
                rule.target_url,
                rule.http_method,
                record.id,
                document=record.document,
                send_document=rule.send_document,
            )
        except SideEffectError as exc:
            # The transition still commits; delivery is best-effort.
            logger.error("Could not dispatch notification for task %s entering '%s': %s", record.id, state, exc)
            return False
        return True


__all__ = ["NotificationDispatcher", "WorkflowEngine"]
