"""
manifest.py – Read and write the project-level TMS manifest.

The manifest lives at ``<project>/.meta/project.tms.json`` and records, for
every synchronized script or (plan, subplan) pair, the TMS suite and the case
id of every scenario:

    {"projectId": "7",
     "files": [{"path": "artifact/script/login.xlsx", "fileType": "SCRIPT",
                "suiteId": "12", "scenarios": [...], "suiteUrl": "..."},
               {"path": "artifact/plan/regression.xlsx", "fileType": "PLAN",
                "subStep": "Smoke", "planSteps": [...], ...}]}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from errors import ManifestError
from models import TestFile
from workbook import find_project_root, relative_artifact_path

logger = logging.getLogger("suite-sync")

META_DIR = ".meta"
MANIFEST_NAME = "project.tms.json"


@dataclass
class Manifest:
    """In-memory copy of project.tms.json."""

    project_id: str
    files: list[TestFile] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data["projectId"] = self.project_id
        data["files"] = [f.to_dict() for f in self.files]
        return data


def _matches(entry: TestFile, relative_path: str, subplan: str | None) -> bool:
    if entry.path != relative_path:
        return False
    return not subplan or entry.subplan == subplan


def manifest_path_for(test_path: str | Path) -> Path:
    root = find_project_root(test_path)
    if root is None:
        raise ManifestError(
            f"{test_path} is not inside a standard project; "
            f"{META_DIR}/{MANIFEST_NAME} cannot be resolved."
        )
    return root / META_DIR / MANIFEST_NAME


class ProjectManifest:
    """Loads the manifest once per run and rewrites it atomically."""

    def __init__(self) -> None:
        self._loaded: dict[Path, Manifest] = {}

    def retrieve(self, test_path: str | Path) -> Manifest:
        meta_file = manifest_path_for(test_path)
        if meta_file in self._loaded:
            return self._loaded[meta_file]

        if not meta_file.is_file():
            raise ManifestError(f"TMS meta json file is not detected in the project: {meta_file}")
        try:
            raw = json.loads(meta_file.read_text(encoding="utf-8"))
            files = [TestFile.from_dict(f) for f in raw.get("files") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise ManifestError(f"Unable to parse project TMS meta json file due to {exc}") from exc

        project_id = raw.get("projectId")
        if project_id in (None, ""):
            raise ManifestError("Project id is not detected inside project TMS meta file.")

        extra = {k: v for k, v in raw.items() if k not in ("projectId", "files")}
        manifest = Manifest(project_id=str(project_id), files=files, extra=extra)
        self._loaded[meta_file] = manifest
        logger.debug("Loaded %d manifest entr(ies) from %s", len(files), meta_file)
        return manifest

    def lookup(self, test_path: str | Path, subplan: str | None = None) -> tuple[str, TestFile | None]:
        """Return the project id and the entry for (path, subplan), if recorded."""
        manifest = self.retrieve(test_path)
        relative_path = relative_artifact_path(test_path)
        for entry in manifest.files:
            if _matches(entry, relative_path, subplan):
                return manifest.project_id, entry
        return manifest.project_id, None

    def write(self, test_path: str | Path, test_file: TestFile) -> None:
        """Replace the entry for the same (path, subplan) key and persist."""
        manifest = self.retrieve(test_path)
        manifest.files = [
            f for f in manifest.files
            if not (f.path == test_file.path and (f.subplan or None) == (test_file.subplan or None))
        ]
        manifest.files.append(test_file)
        self._dump(manifest_path_for(test_path), manifest)

    @staticmethod
    def _dump(meta_file: Path, manifest: Manifest) -> None:
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(suffix=".json", prefix="~tms-", dir=meta_file.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(manifest.to_dict(), handle, indent=2)
                handle.write("\n")
            os.replace(tmp_name, meta_file)
        except OSError as exc:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            raise ManifestError(f"Unable to write data into {meta_file} due to {exc}") from exc
        logger.info("Updated %s", meta_file)
