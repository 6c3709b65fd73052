from fastapi import Request

from media_api.services import TaskExecutor


def get_executor(request: Request) -> TaskExecutor:
    return request.app.state.executor
