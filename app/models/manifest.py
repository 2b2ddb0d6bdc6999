"""Lenient view over an untrusted Web App Manifest JSON object.

Manifests found in the wild are frequently malformed, so every field is
checked for presence *and* type before it is exposed.  Anything unexpected
is treated as absent instead of raising.
"""

from typing import Any, List, Optional

from pydantic import BaseModel


def _string_or_none(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


class ManifestIcon(BaseModel):
    src: str
    type: Optional[str] = None
    sizes: Optional[str] = None
    purpose: Optional[str] = None


class ManifestDocument(BaseModel):
    name: Optional[str] = None
    short_name: Optional[str] = None
    description: Optional[str] = None
    icons: Optional[List[ManifestIcon]] = None

    @classmethod
    def from_json(cls, data: Any) -> "ManifestDocument":
        """Build a document from decoded JSON, dropping wrongly-typed fields.

        *icons* is kept only when it is a list; entries that are not objects
        or have no string ``src`` are skipped.
        """
        if not isinstance(data, dict):
            return cls()

        icons: Optional[List[ManifestIcon]] = None
        raw_icons = data.get("icons")
        if isinstance(raw_icons, list):
            icons = []
            for entry in raw_icons:
                if not isinstance(entry, dict):
                    continue
                src = _string_or_none(entry.get("src"))
                if src is None:
                    continue
                icons.append(
                    ManifestIcon(
                        src=src,
                        type=_string_or_none(entry.get("type")),
                        sizes=_string_or_none(entry.get("sizes")),
                        purpose=_string_or_none(entry.get("purpose")),
                    )
                )

        return cls(
            name=_string_or_none(data.get("name")),
            short_name=_string_or_none(data.get("short_name")),
            description=_string_or_none(data.get("description")),
            icons=icons,
        )
