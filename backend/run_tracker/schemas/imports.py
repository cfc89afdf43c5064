from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ImportStatus(str, Enum):
    imported = "imported"
    duplicate = "duplicate"
    failed = "failed"


class ImportOutcome(BaseModel):
    """Result of importing one input file."""

    path: str
    status: ImportStatus
    file_uuid: Optional[str] = None
    file_id: Optional[int] = None
    error: Optional[str] = None


class ImportReport(BaseModel):
    outcomes: list[ImportOutcome]
    imported: int = 0
    duplicates: int = 0
    failed: int = 0

    @classmethod
    def from_outcomes(cls, outcomes: list[ImportOutcome]) -> "ImportReport":
        return cls(
            outcomes=outcomes,
            imported=sum(1 for o in outcomes if o.status == ImportStatus.imported),
            duplicates=sum(1 for o in outcomes if o.status == ImportStatus.duplicate),
            failed=sum(1 for o in outcomes if o.status == ImportStatus.failed),
        )

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


class ScanRequest(BaseModel):
    # Empty means the configured import_paths
    paths: list[str] = []
    recursive: bool = False
