"""Task registry."""
import abc
import datetime
import logging
import uuid
from typing import Dict, List, Optional

from media_api.errors import TaskNotFound

from .models import Operation, Task, TaskStatus

_logger = logging.getLogger("media_api")


class TaskStore(abc.ABC):
    """Storage for task state, injected into the executor and the routes."""

    @abc.abstractmethod
    def create(self, operation: Operation) -> Task:
        ...

    @abc.abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        ...

    @abc.abstractmethod
    def update(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        output_path: Optional[str] = None,
        output_filename: Optional[str] = None,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> Task:
        ...

    @abc.abstractmethod
    def delete(self, task_id: str) -> Optional[Task]:
        ...

    @abc.abstractmethod
    def list(self) -> List[Task]:
        ...

    def purge_expired(self, now: Optional[datetime.datetime] = None) -> List[Task]:
        return []


class InMemoryTaskStore(TaskStore):
    """
    Process-local task map.

    With ``ttl_seconds`` set, ``purge_expired`` drops finished or failed
    tasks created longer ago than the TTL. Running tasks are never purged.
    """

    def __init__(self, ttl_seconds: Optional[float] = None):
        self.tasks: Dict[str, Task] = {}
        self.ttl_seconds = ttl_seconds

    def create(self, operation: Operation) -> Task:
        task = Task(id=str(uuid.uuid4()), operation=operation)
        self.tasks[task.id] = task
        _logger.info("Created task task_id=%s operation=%s", task.id, operation.value)
        return task

    def get(self, task_id: str) -> Optional[Task]:
        return self.tasks.get(task_id)

    def update(
        self,
        task_id: str,
        status: TaskStatus,
        *,
        output_path: Optional[str] = None,
        output_filename: Optional[str] = None,
        error: Optional[str] = None,
        error_code: Optional[str] = None,
    ) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            _logger.warning("Attempted to update missing task task_id=%s status=%s", task_id, status.value)
            raise TaskNotFound(task_id)

        task.transition(status)
        if output_path is not None:
            task.output_path = output_path
        if output_filename is not None:
            task.output_filename = output_filename
        if error is not None:
            task.error = error
        if error_code is not None:
            task.error_code = error_code

        _logger.info("Updated task task_id=%s status=%s", task_id, status.value)
        return task

    def delete(self, task_id: str) -> Optional[Task]:
        task = self.tasks.pop(task_id, None)
        if task is not None:
            _logger.info("Deleted task task_id=%s status=%s", task_id, task.status.value)
        return task

    def list(self) -> List[Task]:
        return list(self.tasks.values())

    def purge_expired(self, now: Optional[datetime.datetime] = None) -> List[Task]:
        if not self.ttl_seconds:
            return []
        now = now or datetime.datetime.now(datetime.timezone.utc)
        cutoff = now - datetime.timedelta(seconds=self.ttl_seconds)
        expired = [t for t in self.tasks.values() if t.status.is_terminal and t.created_at < cutoff]
        for task in expired:
            self.tasks.pop(task.id, None)
            _logger.info("Expired task task_id=%s status=%s", task.id, task.status.value)
        return expired
