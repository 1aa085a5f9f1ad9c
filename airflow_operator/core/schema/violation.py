"""Violation model for manifests that fail schema validation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Violation:
    """Represents one problem found in a generated manifest.

    Attributes:
        id: Identifier of the check that failed (e.g., "schema.VALIDATION_ERROR")
        message: Human-readable description of the violation
        path: Location path as list of strings (e.g., ["StatefulSet/base-mysql"])
        severity: Severity level - "error", "warning", or "info"
        evidence: Check-specific data such as the raw validator error
    """

    id: str
    message: str
    path: List[str]
    severity: str = "error"
    evidence: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.severity not in ("error", "warning", "info"):
            raise ValueError(f"Invalid severity: {self.severity}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "path": list(self.path),
            "severity": self.severity,
            "evidence": dict(self.evidence),
        }
