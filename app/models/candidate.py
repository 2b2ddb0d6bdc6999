from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

CandidateSource = Literal["html", "opengraph", "twitter", "manifest"]


class TitleCandidate(BaseModel):
    """A page title proposed by one source (``<title>``, OpenGraph, Twitter, manifest)."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(min_length=1)
    source: CandidateSource
    property: str


class DescriptionCandidate(BaseModel):
    """A page description proposed by one source."""

    model_config = ConfigDict(frozen=True)

    value: str = Field(min_length=1)
    source: CandidateSource
    property: str
