"""
Repository records tracked by the registry.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict


@dataclass
class Repository:
    """A registered remote git repository and the location of its working copy."""

    name: str
    url: str
    branch: str
    local_path: Path
    added_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        self.local_path = Path(self.local_path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "name": self.name,
            "url": self.url,
            "branch": self.branch,
            "local_path": str(self.local_path),
            "added_at": self.added_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Repository":
        """Create from dictionary."""
        added_at = data.get("added_at")
        return cls(
            name=data["name"],
            url=data["url"],
            branch=data["branch"],
            local_path=Path(data["local_path"]),
            added_at=datetime.fromisoformat(added_at) if added_at else datetime.now(),
        )
