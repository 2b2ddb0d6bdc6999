from typing import List, Optional

from pydantic import BaseModel

from app.models.candidate import DescriptionCandidate, TitleCandidate
from app.models.icon import Icon


class OperationError(BaseModel):
    """A recoverable failure recorded while resolving a page."""

    step: str
    message: str
    url: Optional[str] = None


class FetchResult(BaseModel):
    url: str
    """Final page URL after redirects."""
    title: str
    titles: List[TitleCandidate]
    descriptions: List[DescriptionCandidate]
    icons: List[Icon]
    errors: Optional[List[OperationError]] = None
