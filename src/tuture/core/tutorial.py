"""Tutorial data model and persistence for tuture

A suite is the metadata file at the repository root (tuture.yml) plus
the hidden support directory holding its JSON mirror and the diff
archive. Both metadata files are always written together.
"""
import json
import logging
import shutil
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .config import Config
from .errors import TutorialFormatError

logger = logging.getLogger(__name__)


@dataclass
class FileDiff:
    """A changed file within a step, with its explanation"""

    file: str
    explain: str = ""
    collapse: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"file": self.file, "explain": self.explain}
        if self.collapse is not None:
            data["collapse"] = self.collapse
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileDiff":
        if not isinstance(data, dict):
            raise TutorialFormatError(f"Expected a file mapping in step diff, got: {data!r}")
        return cls(
            file=data.get("file", ""),
            explain=data.get("explain") or "",
            collapse=data.get("collapse"),
        )


@dataclass
class Step:
    """One tutorial unit, backed by a single commit

    The commit hash is the step's identity across reloads.
    """

    name: str
    commit: str
    explain: str = ""
    diff: List[FileDiff] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for YAML/JSON serialization"""
        data: Dict[str, Any] = {
            "name": self.name,
            "commit": self.commit,
            "explain": self.explain,
            "diff": [file_diff.to_dict() for file_diff in self.diff],
        }
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """Create from dictionary, keeping keys added by hand"""
        if not isinstance(data, dict):
            raise TutorialFormatError(f"Expected a step mapping, got: {data!r}")
        diff = data.get("diff") or []
        if not isinstance(diff, list):
            raise TutorialFormatError(f"Diff of step {data.get('commit')!r} is not a list")
        known = {"name", "commit", "explain", "diff"}
        return cls(
            name=data.get("name", ""),
            commit=str(data.get("commit", "")),
            explain=data.get("explain") or "",
            diff=[FileDiff.from_dict(d) for d in diff],
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class Tutorial:
    """Root object persisted to tuture.yml"""

    name: str
    version: str = "0.0.1"
    language: str = "en"
    topics: List[str] = field(default_factory=list)
    email: str = ""
    steps: List[Step] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "language": self.language,
            "topics": list(self.topics),
            "email": self.email,
        }
        data.update(self.extra)
        data["steps"] = [step.to_dict() for step in self.steps]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Tutorial":
        known = {"name", "version", "language", "topics", "email", "steps"}
        steps = data.get("steps") or []
        if not isinstance(steps, list):
            raise TutorialFormatError("steps is not a list")
        topics = data.get("topics") or []
        if isinstance(topics, str):
            topics = [t.strip() for t in topics.split(",") if t.strip()]
        return cls(
            name=data.get("name", ""),
            version=str(data.get("version", "0.0.1")),
            language=data.get("language", "en"),
            topics=list(topics),
            email=data.get("email") or "",
            steps=[Step.from_dict(s) for s in steps],
            extra={k: v for k, v in data.items() if k not in known},
        )

    def find_step(self, commit: str) -> Optional[Step]:
        """Get the step for a commit hash, if any"""
        for step in self.steps:
            if step.commit == commit:
                return step
        return None


class TutorialStore:
    """Reads and writes the files of a tuture suite"""

    def __init__(self, config: Config):
        self.config = config

    def exists(self) -> bool:
        """Check if both the support directory and tuture.yml exist"""
        return self.config.support_dir.exists() and self.config.metadata_path.exists()

    def create_support_dir(self) -> None:
        self.config.support_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Created support directory: {self.config.support_dir}")

    def load(self) -> Tutorial:
        """Load the tutorial from tuture.yml

        Returns:
            Parsed tutorial

        Raises:
            TutorialFormatError: If the file is unreadable or malformed
        """
        try:
            data = yaml.safe_load(self.config.metadata_path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise TutorialFormatError(str(e)) from e

        if not isinstance(data, dict):
            raise TutorialFormatError(
                f"{self.config.metadata_path.name} does not contain a tutorial mapping"
            )

        return Tutorial.from_dict(data)

    def save(self, tutorial: Tutorial) -> None:
        """Write tutorial into tuture.yml and its JSON mirror

        Args:
            tutorial: Tutorial to persist
        """
        data = tutorial.to_dict()
        self._write_mirror(data)
        self.config.metadata_path.write_text(
            yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
            encoding="utf-8",
        )
        logger.info(f"Saved {len(tutorial.steps)} step(s) to {self.config.metadata_path}")

    def sync_mirror(self) -> Tutorial:
        """Rewrite the JSON mirror from tuture.yml

        Returns:
            The tutorial that was synced
        """
        tutorial = self.load()
        self._write_mirror(tutorial.to_dict())
        return tutorial

    def save_diff_archive(self, diffs: List[Dict[str, Any]]) -> None:
        """Write full diffs of all commits into the diff archive

        Args:
            diffs: List of {"commit": hash, "diff": [...]} entries
        """
        self.config.diff_archive_path.write_text(
            json.dumps(diffs, ensure_ascii=False), encoding="utf-8"
        )
        logger.debug(f"Stored diffs of {len(diffs)} commit(s)")

    def remove(self) -> None:
        """Remove all tuture files of this suite"""
        if self.config.metadata_path.exists():
            self.config.metadata_path.unlink()
        if self.config.support_dir.exists():
            shutil.rmtree(self.config.support_dir)
        logger.debug("Removed tuture suite")

    def _write_mirror(self, data: Dict[str, Any]) -> None:
        self.config.mirror_path.write_text(
            json.dumps(data, ensure_ascii=False), encoding="utf-8"
        )
