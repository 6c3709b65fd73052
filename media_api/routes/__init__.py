from .info import router as info_router
from .process import router as process_router
from .tasks import router as tasks_router

__all__ = [
    "info_router",
    "process_router",
    "tasks_router",
]
