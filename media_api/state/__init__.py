from .models import (
    ConvertOperation,
    DownloadOperation,
    ExtractAudioOperation,
    MergeOperation,
    Operation,
    ProcessingRequest,
    Task,
    TaskStatus,
    TrimOperation,
)
from .task_state import InMemoryTaskStore, TaskStore

__all__ = [
    "ConvertOperation",
    "DownloadOperation",
    "ExtractAudioOperation",
    "MergeOperation",
    "Operation",
    "ProcessingRequest",
    "Task",
    "TaskStatus",
    "TrimOperation",
    "InMemoryTaskStore",
    "TaskStore",
]
