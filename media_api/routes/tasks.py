"""Async task routes: submit, poll, fetch result, cancel."""
import logging
import os
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from media_api.services import TaskExecutor
from media_api.state import Task, TaskStatus
from media_api.storage import cleanup_files

from .dependencies import get_executor
from .schemas import parse_processing_request

router = APIRouter()
_logger = logging.getLogger("media_api")


def _task_data(task: Task) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": task.id,
        "operation": task.operation.value,
        "status": task.status.value,
        "created_at": task.created_at.isoformat(),
        "updated_at": task.updated_at.isoformat(),
    }
    if task.status == TaskStatus.done:
        data["output_filename"] = task.output_filename
    elif task.status == TaskStatus.failed:
        data["error"] = task.error
        data["error_code"] = task.error_code
    return data


@router.post("/tasks", response_class=JSONResponse, status_code=202)
async def submit_task(
    payload: Dict[str, Any] = Body(...),
    executor: TaskExecutor = Depends(get_executor),
):
    """
    Submit any processing operation and return a task ID to poll.
    """
    request = parse_processing_request(payload)
    task = executor.submit(request)
    return {"status": "success", "task_id": task.id}


@router.get("/task/{task_id}", response_class=JSONResponse)
async def get_task_status(task_id: str, executor: TaskExecutor = Depends(get_executor)):
    """
    Get the status of a task.
    """
    task = executor.get(task_id)
    return {"status": "success", "data": _task_data(task)}


@router.get("/tasks", response_class=JSONResponse)
async def list_all_tasks(executor: TaskExecutor = Depends(get_executor)):
    """
    List all tasks and their status.
    """
    return {"status": "success", "data": [_task_data(t) for t in executor.store.list()]}


@router.get("/task/{task_id}/file")
async def fetch_task_result(task_id: str, executor: TaskExecutor = Depends(get_executor)):
    """
    Return the produced file of a finished task. The task and its file are
    removed once the response has been sent.
    """
    task = executor.consume_result(task_id)
    if not task.output_path or not os.path.exists(task.output_path):
        _logger.warning("Result file missing task_id=%s path=%s", task_id, task.output_path)
        executor.discard(task_id)
        raise HTTPException(status_code=404, detail="Result file not found on server")

    _logger.info("Serving result task_id=%s filename=%s", task_id, task.output_filename)
    return FileResponse(
        path=task.output_path,
        filename=task.output_filename,
        media_type="application/octet-stream",
        background=BackgroundTask(cleanup_files, task.output_path),
    )


@router.delete("/task/{task_id}", response_class=JSONResponse)
async def delete_task(task_id: str, executor: TaskExecutor = Depends(get_executor)):
    """
    Cancel a task if it is still running, then delete it and its files.
    """
    task = await executor.cancel(task_id)
    return {"status": "success", "message": f"Task {task.id} deleted successfully"}
