from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

IconSource = Literal["html", "manifest", "default"]


class ImageMetadata(BaseModel):
    """Decoded properties of an icon's image bytes."""

    model_config = ConfigDict(frozen=True)

    width: PositiveInt
    height: PositiveInt
    format: str
    size: int
    buffer: bytes = Field(default=b"", exclude=True, repr=False)


class Icon(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    type: str
    sizes: str = ""
    source: IconSource
    metadata: Optional[ImageMetadata] = None
