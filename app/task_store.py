"""
Round-1 → round-2 memory: which repository a task was published to.

The default store lives only as long as the process. JsonFileTaskStore keeps
the same mapping in a JSON file for deployments that must survive restarts.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from app.schemas import TaskState

logger = logging.getLogger(__name__)


class TaskStore(ABC):
    @abstractmethod
    def put(self, task_id: str, state: TaskState) -> None:
        ...

    @abstractmethod
    def get(self, task_id: str) -> Optional[TaskState]:
        """Return the stored state, or None when the task has no round-1 record."""


class InMemoryTaskStore(TaskStore):
    def __init__(self):
        self._states: Dict[str, TaskState] = {}
        self._lock = threading.Lock()

    def put(self, task_id: str, state: TaskState) -> None:
        with self._lock:
            self._states[task_id] = state

    def get(self, task_id: str) -> Optional[TaskState]:
        with self._lock:
            return self._states.get(task_id)


class JsonFileTaskStore(TaskStore):
    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, dict]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            return json.load(f)

    def put(self, task_id: str, state: TaskState) -> None:
        with self._lock:
            data = self._load()
            data[task_id] = state.model_dump()
            tmp_path = f"{self.path}.tmp"
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        logger.info(f"💾 Stored task state for {task_id} in {self.path}")

    def get(self, task_id: str) -> Optional[TaskState]:
        with self._lock:
            raw = self._load().get(task_id)
        return TaskState.model_validate(raw) if raw is not None else None


def create_task_store(path: Optional[str] = None) -> TaskStore:
    if path:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return JsonFileTaskStore(path)
    return InMemoryTaskStore()
