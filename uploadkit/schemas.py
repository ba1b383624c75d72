from typing import Optional

from pydantic import BaseModel


class RequestPayload(BaseModel):
    action: str
    message: str


class ResponsePayload(BaseModel):
    message: str
    status_code: Optional[int] = None


class SlugRequest(BaseModel):
    text: str


class SlugResponse(BaseModel):
    slug: str
