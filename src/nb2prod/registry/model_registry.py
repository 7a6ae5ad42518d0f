"""
Local Model Registry - File-based model versioning

Each registered bundle is copied to <root>/v<N>/model.joblib and described in
<root>/registry.json (metrics, checksum, approval status). Versions start at 1
and only grow; a version is never renumbered or reused.
"""

import logging
import shutil
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from nb2prod.io.readers import read_json
from nb2prod.io.writers import atomic_write_json
from nb2prod.utils.utilities import ensure_dir, file_sha256, utc_timestamp

logger = logging.getLogger(__name__)

PENDING = "PendingManualApproval"
APPROVED = "Approved"
REJECTED = "Rejected"
STATUSES: tuple[str, ...] = (PENDING, APPROVED, REJECTED)

INDEX_FILE = "registry.json"
MODEL_FILE = "model.joblib"


class ModelVersion(BaseModel):
    version: int
    path: str
    sha256: str
    status: str
    created_at: str
    updated_at: str
    metrics: Dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class LocalModelRegistry:
    """Registry implementation using local file storage"""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.index_path = self.root / INDEX_FILE

    def _load(self) -> List[ModelVersion]:
        if not self.index_path.exists():
            return []
        data = read_json(self.index_path)
        return [ModelVersion.model_validate(v) for v in data.get("versions", [])]

    def _save(self, versions: List[ModelVersion]) -> None:
        atomic_write_json({"versions": [v.model_dump() for v in versions]}, self.index_path)

    def list_versions(self) -> List[ModelVersion]:
        return sorted(self._load(), key=lambda v: v.version)

    def get(self, version: int) -> ModelVersion:
        for v in self._load():
            if v.version == version:
                return v
        raise KeyError(f"Model version {version} not found in registry {self.root}")

    def register(
        self,
        model_path: Path,
        metrics: Optional[Dict[str, Any]] = None,
        status: str = PENDING,
        description: str = "",
    ) -> ModelVersion:
        model_path = Path(model_path)
        if not model_path.exists():
            raise FileNotFoundError(f"Model file not found: {model_path}")
        if status not in STATUSES:
            raise ValueError(f"Unknown status '{status}', expected one of {STATUSES}")

        versions = self._load()
        number = max((v.version for v in versions), default=0) + 1
        target = self.root / f"v{number}" / MODEL_FILE
        ensure_dir(target.parent)
        shutil.copy2(model_path, target)

        now = utc_timestamp()
        entry = ModelVersion(
            version=number,
            path=str(target),
            sha256=file_sha256(target),
            status=status,
            created_at=now,
            updated_at=now,
            metrics=metrics or {},
            description=description,
        )
        versions.append(entry)
        self._save(versions)
        logger.info(f"Registered model version {number} ({status}) at {target}")
        return entry

    def set_status(self, version: int, status: str) -> ModelVersion:
        if status not in STATUSES:
            raise ValueError(f"Unknown status '{status}', expected one of {STATUSES}")
        versions = self._load()
        for i, v in enumerate(versions):
            if v.version == version:
                versions[i] = v.model_copy(update={"status": status, "updated_at": utc_timestamp()})
                self._save(versions)
                logger.info(f"Model version {version} status: {v.status} -> {status}")
                return versions[i]
        raise KeyError(f"Model version {version} not found in registry {self.root}")

    def latest(self, status: Optional[str] = APPROVED) -> Optional[ModelVersion]:
        """Highest version with the given status (any status when None)."""
        candidates = [v for v in self._load() if status is None or v.status == status]
        if not candidates:
            return None
        return max(candidates, key=lambda v: v.version)
