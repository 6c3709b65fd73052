"""Request models for the probe endpoints and the async submit body."""
from typing import Any, Dict, Mapping, Optional

from fastapi.exceptions import RequestValidationError
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from media_api.state import ProcessingRequest

_processing_request = TypeAdapter(ProcessingRequest)


class UrlRequest(BaseModel):
    """Single source URL (accepts ``url`` or ``videoUrl``)."""

    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1, validation_alias=AliasChoices("url", "videoUrl", "video_url"))
    headers: Optional[Dict[str, str]] = None


def parse_processing_request(payload: Mapping[str, Any]):
    """Validate an async submit body against the operation union."""
    try:
        return _processing_request.validate_python(payload)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise RequestValidationError([{**e, "loc": ("body", *e["loc"])} for e in errors])
