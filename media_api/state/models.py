"""Task and processing request models."""
import datetime
from enum import Enum
from typing import Annotated, Dict, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from media_api.errors import InvalidTransition


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Operation(str, Enum):
    download = "download"
    merge = "merge"
    trim = "trim"
    convert = "convert"
    extract_audio = "extract-audio"


class TaskStatus(str, Enum):
    pending = "pending"
    processing = "processing"
    done = "done"
    failed = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.done, TaskStatus.failed)


_TRANSITIONS = {
    TaskStatus.pending: {TaskStatus.processing, TaskStatus.failed},
    TaskStatus.processing: {TaskStatus.done, TaskStatus.failed},
    TaskStatus.done: set(),
    TaskStatus.failed: set(),
}


class Task(BaseModel):
    """One processing request and its lifecycle."""

    id: str
    operation: Operation
    status: TaskStatus = TaskStatus.pending
    output_path: Optional[str] = None
    output_filename: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    created_at: datetime.datetime = Field(default_factory=_utcnow)
    updated_at: datetime.datetime = Field(default_factory=_utcnow)

    def transition(self, target: TaskStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise InvalidTransition(self.id, self.status.value, target.value)
        self.status = target
        self.updated_at = _utcnow()


# ----------------------------
# Processing requests
# ----------------------------

def _alias(*names: str):
    return AliasChoices(*names)


class _BaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    headers: Optional[Dict[str, str]] = Field(
        default=None,
        description="Extra request headers for the source fetch (e.g. Referer)",
    )


class DownloadOperation(_BaseRequest):
    operation: Literal["download"] = "download"
    url: str = Field(min_length=1, validation_alias=_alias("url", "videoUrl", "video_url"))
    format_id: Optional[str] = Field(default=None, validation_alias=_alias("format_id", "formatId"))


class MergeOperation(_BaseRequest):
    operation: Literal["merge"] = "merge"
    video_url: str = Field(min_length=1, validation_alias=_alias("video_url", "videoUrl"))
    audio_url: str = Field(min_length=1, validation_alias=_alias("audio_url", "audioUrl"))
    output_format: str = Field(default="mp4", validation_alias=_alias("output_format", "outputFormat"))


class TrimOperation(_BaseRequest):
    operation: Literal["trim"] = "trim"
    video_url: str = Field(min_length=1, validation_alias=_alias("video_url", "videoUrl"))
    start_time: float = Field(validation_alias=_alias("start_time", "startTime"))
    end_time: float = Field(validation_alias=_alias("end_time", "endTime"))
    output_format: str = Field(default="mp4", validation_alias=_alias("output_format", "outputFormat"))


class ConvertOperation(_BaseRequest):
    operation: Literal["convert"] = "convert"
    video_url: str = Field(min_length=1, validation_alias=_alias("video_url", "videoUrl"))
    output_format: str = Field(default="mp4", validation_alias=_alias("output_format", "outputFormat"))
    quality: str = "high"


class ExtractAudioOperation(_BaseRequest):
    operation: Literal["extract-audio"] = "extract-audio"
    video_url: str = Field(min_length=1, validation_alias=_alias("video_url", "videoUrl"))
    format: str = "mp3"
    bitrate: Union[int, str] = "320"


ProcessingRequest = Annotated[
    Union[
        DownloadOperation,
        MergeOperation,
        TrimOperation,
        ConvertOperation,
        ExtractAudioOperation,
    ],
    Field(discriminator="operation"),
]
