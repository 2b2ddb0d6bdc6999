from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TIMEOUT_MS = 10_000


class FetchOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    include_metadata: bool = Field(
        default=False,
        alias="includeMetadata",
        description="Download every resolved icon and attach its dimensions, format and size.",
    )
    timeout: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        description="Timeout in milliseconds applied to every network call.",
    )
    user_agent: Optional[str] = Field(
        default=None,
        alias="userAgent",
        description="Replaces the default browser User-Agent header.",
    )


class ResolveRequest(FetchOptions):
    url: str
    """Page to resolve.

    Kept as a plain string (not ``HttpUrl``) so that validation happens in the
    URL normalizer and invalid input is reported the same way as for direct
    library callers.
    """
