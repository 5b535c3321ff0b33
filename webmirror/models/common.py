from pydantic import BaseModel


class AcceptedResponse(BaseModel):
    """Returned when a mirror job was scheduled rather than completed."""

    url: str
    message: str


class ErrorResponse(BaseModel):
    detail: str
