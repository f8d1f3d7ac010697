"""Models for segmentation processor payloads."""

from pydantic import BaseModel


class ProcessorErrorPayload(BaseModel):
    """Error body returned by the processor on a non-success status."""

    error: str | None = None
