from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


class SubmitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    data: str | None = None
    referer_path: str | None = Field(default=None, alias="refererPath")


class SubmitResponse(BaseModel):
    success: bool = True
    data: str | None = None  # base64-encoded origin body
    status_code: int | None = None
    headers: dict[str, str] = {}
    buffer_size: int | None = None
    error: str | None = None


@dataclass
class SubmitResult:
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    data: str = ""
    buffer_size: int = 0
