"""
Request bodies accepted by the fetch and purge endpoints.
"""

from typing import Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..domain.errors import InvalidRequestError

RequestT = TypeVar("RequestT", bound=BaseModel)


class FetchRequest(BaseModel):
    """Body of ``POST /fetch``."""

    url: str = Field(..., description="Resource to return, from cache or origin")
    # Part of the shared wire shape; the fetch path does not use it
    key: Optional[str] = Field(None, description="Unused by the fetch path")


class PurgeRequest(BaseModel):
    """Body of ``POST /purge``."""

    url: str = Field(..., description="Resource whose cached body is dropped")
    key: Optional[str] = Field(None, description="Unused by the purge path")


def parse_request(body: bytes, model: Type[RequestT]) -> RequestT:
    """Decode a JSON request body into ``model``.

    Raises:
        InvalidRequestError: body is not JSON or does not match ``model``
    """
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        if errors:
            first = errors[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            detail = f"{location}: {first['msg']}" if location else first["msg"]
        else:
            detail = str(e)
        raise InvalidRequestError(f"invalid request body: {detail}", original_error=e)
