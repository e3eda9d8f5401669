"""CDN upload response dataclasses.

WHY: The CDN answers a batch upload with camelCase JSON. Typed dataclasses
make the fields explicit and keep the key mapping in one place.

HOW: from_dict() factories parse the raw response dicts.

RULES:
- DeployedFile mirrors one entry of the response's "files" array
- deployedUrl is required; the other fields may be absent
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass
class DeployedFile:
    """One file the CDN fetched and published."""

    deployed_url: str
    file: str = ""
    sha: str = ""
    size: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> DeployedFile:
        return cls(
            deployed_url=data["deployedUrl"],
            file=data.get("file", ""),
            sha=data.get("sha", ""),
            size=int(data.get("size") or 0),
        )


@dataclass
class UploadResult:
    """Full response of a batch upload.

    RULES:
    - files keeps the order the CDN returned
    - cdn_base is the CDN's public root URL
    """

    files: List[DeployedFile] = field(default_factory=list)
    cdn_base: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> UploadResult:
        return cls(
            files=[DeployedFile.from_dict(f) for f in data.get("files", [])],
            cdn_base=data.get("cdnBase", ""),
        )

    @property
    def deployed_urls(self) -> List[str]:
        return [f.deployed_url for f in self.files]
