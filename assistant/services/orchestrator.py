"""Meeting orchestration: the active meeting's messages, tasks and AI round trips.

One ``MeetingSession`` exists per started meeting. It is created by
``start_meeting`` (so its message and task lists start empty), closed by
``end_meeting`` and replaced by the next ``start_meeting``; a closed session
stays readable for the log, search and task views until then.

Every operation runs under the orchestrator's re-entrant lock, so concurrent
callers are served one at a time. Multi-step operations do not roll back: a
user message whose classification fails stays persisted, and a meeting whose
summary fails stays completed.
"""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional, Union

from assistant.models import (
    Meeting,
    MeetingStatus,
    Message,
    MessageCategory,
    MessageType,
    Notification,
    Person,
    Task,
    TaskProposal,
    TaskStatus,
)
from assistant.services.ai_service import AIService
from assistant.services.events import EventBus
from assistant.services.llm import LLMProviderError
from assistant.services.persistence import GatewayError, PersistenceGateway

TASK_STATUS_LABELS = {
    TaskStatus.PENDING: "Pendiente",
    TaskStatus.IN_PROGRESS: "En progreso",
    TaskStatus.COMPLETED: "Completada",
}


class MeetingError(RuntimeError):
    pass


class NoActiveMeetingError(MeetingError):
    pass


class InvalidTaskReferenceError(MeetingError):
    pass


class OperationFailedError(MeetingError):
    pass


@dataclass
class MeetingSession:
    """In-memory state of one meeting between start and the next start."""
    meeting: Optional[Meeting]
    messages: list[Message] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.meeting is not None

    def has_message(self, message_id: str) -> bool:
        return any(message.id == message_id for message in self.messages)

    def set_task_status(self, task_id: str, status: TaskStatus) -> Optional[Task]:
        for index, task in enumerate(self.tasks):
            if task.id == task_id:
                self.tasks[index] = task.model_copy(update={"status": status})
                return self.tasks[index]
        return None

    def transcript(self) -> list[dict]:
        return [
            {
                "role": "user" if message.type == MessageType.USER else "assistant",
                "content": message.content,
            }
            for message in self.messages
        ]

    def close(self) -> None:
        self.meeting = None


@dataclass
class MeetingOutcome:
    meeting: Meeting
    summary: Optional[Message] = None


class MeetingOrchestrator:
    def __init__(
        self,
        gateway: PersistenceGateway,
        ai_service: AIService,
        events: Optional[EventBus] = None,
    ) -> None:
        self._gateway = gateway
        self._ai = ai_service
        self._events = events or EventBus()
        self._lock = threading.RLock()
        self._depth = 0
        self._session: Optional[MeetingSession] = None
        self._active_filter: Optional[MessageCategory] = None
        self._logger = logging.getLogger("assistant.orchestrator")

    # ── State ─────────────────────────────────────────────────────────

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def active_meeting(self) -> Optional[Meeting]:
        session = self._session
        return session.meeting if session else None

    @property
    def messages(self) -> list[Message]:
        session = self._session
        return list(session.messages) if session else []

    @property
    def tasks(self) -> list[Task]:
        session = self._session
        return list(session.tasks) if session else []

    @property
    def busy(self) -> bool:
        """True while any operation is in flight. Advisory, for UI controls."""
        return self._depth > 0

    @property
    def active_filter(self) -> Optional[MessageCategory]:
        return self._active_filter

    def set_active_filter(self, category: Optional[Union[MessageCategory, str]]) -> None:
        self._active_filter = MessageCategory(category) if category else None

    @contextmanager
    def _operation(self) -> Iterator[None]:
        with self._lock:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1

    # ── Reporting ─────────────────────────────────────────────────────

    def _meeting_id(self) -> Optional[str]:
        meeting = self.active_meeting
        return meeting.id if meeting else None

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        self._events.notify(
            Notification(title=title, description=description, variant=variant),
            meeting_id=self._meeting_id(),
        )

    def _report_failure(self, description: str, exc: Exception) -> OperationFailedError:
        self._logger.warning("%s (%s: %s)", description, type(exc).__name__, exc)
        self._notify("Error", description, variant="destructive")
        error = OperationFailedError(description)
        error.__cause__ = exc
        return error

    def _require_session(self) -> MeetingSession:
        session = self._session
        if session is None or not session.is_active:
            self._logger.warning("Operation rejected: no active meeting")
            self._notify("Error", "No hay una reunión activa.", variant="destructive")
            raise NoActiveMeetingError("No active meeting")
        return session

    def _reject(self, description: str, error_cls: type[MeetingError] = MeetingError) -> MeetingError:
        self._logger.warning("Operation rejected: %s", description)
        self._notify("Error", description, variant="destructive")
        return error_cls(description)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start_meeting(
        self,
        title: str,
        description: Optional[str] = None,
        participants: Optional[list[str]] = None,
    ) -> Meeting:
        if not title or not title.strip():
            raise self._reject("El título de la reunión es obligatorio.")
        with self._operation():
            try:
                created = self._gateway.create_meeting(
                    title.strip(), description, list(participants or [])
                )
                meeting = self._gateway.update_meeting(created.id, status=MeetingStatus.IN_PROGRESS)
            except GatewayError as exc:
                raise self._report_failure("No se pudo iniciar la reunión.", exc) from exc

            self._session = MeetingSession(meeting=meeting)
            self._logger.info("Meeting started: id=%s title=%r", meeting.id, meeting.title)
            self._events.publish("meeting_started", meeting.id, meeting.model_dump(mode="json"))
            self._notify("Reunión iniciada", f'"{meeting.title}" ha iniciado correctamente.')
            return meeting

    def end_meeting(self) -> Optional[MeetingOutcome]:
        """Complete the active meeting and store its AI summary.

        Returns None when there is no active meeting.
        """
        with self._operation():
            session = self._session
            if session is None or not session.is_active:
                self._logger.info("end_meeting ignored: no active meeting")
                return None
            meeting = session.meeting

            try:
                completed = self._gateway.update_meeting(meeting.id, status=MeetingStatus.COMPLETED)
            except GatewayError as exc:
                raise self._report_failure("No se pudo finalizar la reunión.", exc) from exc

            failure: Optional[OperationFailedError] = None
            summary_message: Optional[Message] = None
            try:
                summary = self._ai.summarize(session.transcript())
                summary_message = self._gateway.add_message(
                    meeting.id,
                    {
                        "type": MessageType.ASSISTANT,
                        "content": summary["summary"],
                        "category": MessageCategory.GENERAL,
                    },
                )
            except (GatewayError, LLMProviderError, ValueError) as exc:
                failure = self._report_failure("No se pudo generar el resumen de la reunión.", exc)
            finally:
                session.close()

            self._logger.info(
                "Meeting ended: id=%s messages=%d summary=%s",
                meeting.id, len(session.messages), summary_message is not None,
            )
            self._events.publish("meeting_ended", meeting.id, completed.model_dump(mode="json"))
            if failure is not None:
                raise failure
            self._events.notify(
                Notification(
                    title="Reunión finalizada",
                    description="La reunión ha terminado y se ha generado un resumen.",
                ),
                meeting_id=meeting.id,
            )
            return MeetingOutcome(meeting=completed, summary=summary_message)

    def load_active_meeting(self) -> Optional[Meeting]:
        """Adopt a meeting left in progress (e.g. across a restart)."""
        with self._operation():
            try:
                meetings = self._gateway.list_meetings()
            except GatewayError as exc:
                raise self._report_failure("No se pudo cargar la reunión activa.", exc) from exc

            meeting = next((m for m in meetings if m.status == MeetingStatus.IN_PROGRESS), None)
            if meeting is None:
                return None

            session = MeetingSession(meeting=meeting)
            try:
                session.messages = self._gateway.list_messages(meeting.id)
            except GatewayError as exc:
                self._logger.warning("Failed to load messages for meeting=%s: %s", meeting.id, exc)
            try:
                session.tasks = sorted(self._gateway.list_tasks(meeting.id), key=lambda t: t.created_at)
            except GatewayError as exc:
                self._logger.warning("Failed to load tasks for meeting=%s: %s", meeting.id, exc)

            self._session = session
            self._logger.info(
                "Resumed meeting id=%s messages=%d tasks=%d",
                meeting.id, len(session.messages), len(session.tasks),
            )
            return meeting

    # ── Messages ──────────────────────────────────────────────────────

    def _persist_and_append(self, session: MeetingSession, fields: dict) -> Message:
        message = self._gateway.add_message(session.meeting.id, fields)
        session.messages.append(message)
        self._events.publish("message_added", message.meeting_id, message.model_dump(mode="json"))
        return message

    def record_user_message(
        self, content: str, sender: Optional[Union[Person, dict]] = None
    ) -> Message:
        """Store a user message, then classify it into a reply and task proposals."""
        with self._operation():
            session = self._require_session()
            if not content or not content.strip():
                raise self._reject("El mensaje está vacío.")
            if isinstance(sender, dict):
                sender = Person.model_validate(sender)
            try:
                message = self._persist_and_append(
                    session, {"type": MessageType.USER, "content": content, "sender": sender}
                )
            except GatewayError as exc:
                raise self._report_failure("No se pudo enviar el mensaje.", exc) from exc

            self._process_with_ai(message)
            return message

    def _process_with_ai(self, message: Message) -> None:
        try:
            classification = self._ai.classify(message.content)
        except (LLMProviderError, ValueError) as exc:
            self._logger.warning("Classification failed for message=%s: %s", message.id, exc)
            self._notify("Error", "No se pudo procesar el mensaje con IA.", variant="destructive")
            return

        self._logger.info(
            "Message %s classified as %s with %d task proposal(s)",
            message.id, classification.category.value, len(classification.tasks),
        )
        try:
            self.record_assistant_reply(classification.response, classification.category)
        except MeetingError:
            pass  # already logged and notified

        for proposal in classification.tasks:
            try:
                self._add_proposed_task(proposal, message.id)
            except MeetingError:
                continue

    def record_assistant_reply(
        self,
        content: str,
        category: Union[MessageCategory, str] = MessageCategory.GENERAL,
    ) -> Message:
        """Store an assistant message. Assistant messages are never classified."""
        with self._operation():
            session = self._require_session()
            try:
                return self._persist_and_append(
                    session,
                    {
                        "type": MessageType.ASSISTANT,
                        "content": content,
                        "category": MessageCategory(category),
                    },
                )
            except GatewayError as exc:
                raise self._report_failure("No se pudo registrar la respuesta del asistente.", exc) from exc

    def add_message(
        self,
        type: Union[MessageType, str],
        content: str,
        sender: Optional[Union[Person, dict]] = None,
        category: Optional[Union[MessageCategory, str]] = None,
    ) -> Message:
        if MessageType(type) == MessageType.USER:
            if category:
                raise self._reject("Los mensajes de usuario no llevan categoría.")
            return self.record_user_message(content, sender=sender)
        return self.record_assistant_reply(content, category or MessageCategory.GENERAL)

    # ── Tasks ─────────────────────────────────────────────────────────

    def _add_proposed_task(self, proposal: TaskProposal, from_message_id: str) -> Task:
        return self.add_task(
            title=proposal.title,
            description=proposal.description,
            status=TaskStatus.PENDING,
            assignee=proposal.assignee,
            due_date=proposal.due_date,
            from_message_id=from_message_id,
        )

    def add_task(
        self,
        title: str,
        description: str = "",
        status: Union[TaskStatus, str] = TaskStatus.PENDING,
        assignee: Optional[Union[Person, dict]] = None,
        due_date: Optional[datetime] = None,
        from_message_id: Optional[str] = None,
    ) -> Task:
        with self._operation():
            session = self._require_session()
            if not title or not title.strip():
                raise self._reject("El título de la tarea es obligatorio.")
            if from_message_id and not session.has_message(from_message_id):
                raise self._reject(
                    "La tarea hace referencia a un mensaje de otra reunión.",
                    InvalidTaskReferenceError,
                )
            if isinstance(assignee, dict):
                assignee = Person.model_validate(assignee)

            try:
                task = self._gateway.add_task(
                    session.meeting.id,
                    {
                        "title": title.strip(),
                        "description": description or "",
                        "status": TaskStatus(status),
                        "assignee": assignee,
                        "due_date": due_date,
                        "from_message_id": from_message_id,
                    },
                )
            except GatewayError as exc:
                raise self._report_failure("No se pudo crear la tarea.", exc) from exc

            session.tasks.append(task)
            self._events.publish("task_added", task.meeting_id, task.model_dump(mode="json"))
            self._notify("Tarea creada", f'"{task.title}" ha sido añadida a la lista.')
            return task

    def update_task_status(self, task_id: str, status: Union[TaskStatus, str]) -> Task:
        """Persist a status change, then mirror it on the in-memory task if present."""
        status = TaskStatus(status)
        with self._operation():
            try:
                updated = self._gateway.update_task_status(task_id, status)
            except GatewayError as exc:
                raise self._report_failure("No se pudo actualizar el estado de la tarea.", exc) from exc

            session = self._session
            local = session.set_task_status(task_id, status) if session else None
            self._events.publish("task_updated", updated.meeting_id, {"id": task_id, "status": status.value})
            self._notify(
                "Tarea actualizada",
                f'El estado ha sido actualizado a "{TASK_STATUS_LABELS[status]}"',
            )
            return local or updated

    # ── Views ─────────────────────────────────────────────────────────

    def filtered_messages(
        self, category: Optional[Union[MessageCategory, str]] = None
    ) -> list[Message]:
        if not category:
            return self.messages
        category = MessageCategory(category)
        return [message for message in self.messages if message.category == category]

    def tasks_by_status(self) -> dict[str, list[Task]]:
        buckets: dict[str, list[Task]] = {status.value: [] for status in TaskStatus}
        for task in self.tasks:
            buckets[task.status.value].append(task)
        return buckets

    def log_entries(self) -> list[Message]:
        """Categorized assistant messages under the active filter."""
        return [
            message
            for message in self.filtered_messages(self._active_filter)
            if message.type == MessageType.ASSISTANT and message.category is not None
        ]

    def search(self, query: str) -> list[Message]:
        needle = (query or "").strip().lower()
        if not needle:
            return []
        return [
            message
            for message in self.messages
            if message.type == MessageType.ASSISTANT and needle in message.content.lower()
        ]

    def meeting_summaries(self) -> list[dict]:
        """Completed meetings paired with their latest general assistant message."""
        try:
            meetings = self._gateway.list_meetings()
            results = []
            for meeting in meetings:
                if meeting.status != MeetingStatus.COMPLETED:
                    continue
                summary = next(
                    (
                        message
                        for message in reversed(self._gateway.list_messages(meeting.id))
                        if message.type == MessageType.ASSISTANT
                        and message.category == MessageCategory.GENERAL
                    ),
                    None,
                )
                results.append({"meeting": meeting, "summary": summary})
            return results
        except GatewayError as exc:
            raise self._report_failure("No se pudieron cargar los resúmenes de reuniones.", exc) from exc
