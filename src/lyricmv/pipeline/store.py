"""Durable project snapshots and the in-process project registry."""

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Generic, List, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ..config import config
from ..exceptions import NotFoundError, ValidationError
from ..models import SNAPSHOT_SCHEMA_VERSION, ProjectSnapshot, ProjectState
from ..utils import write_atomically

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "project.json"


class ProjectStore:
    """Reads and writes ``<root>/<project_id>/project.json``.

    Every save replaces the file atomically, so a crash leaves either the
    previous snapshot or the new one on disk.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root else config.projects_dir

    def project_dir(self, project_id: str) -> Path:
        return self.root / project_id

    def snapshot_path(self, project_id: str) -> Path:
        return self.project_dir(project_id) / SNAPSHOT_FILENAME

    def exists(self, project_id: str) -> bool:
        return self.snapshot_path(project_id).exists()

    def save(self, state: ProjectState) -> Path:
        """Persist a project state.

        Args:
            state: State to persist.

        Returns:
            Path of the snapshot file.
        """
        path = self.snapshot_path(state.id)
        snapshot = ProjectSnapshot.from_state(state)
        write_atomically(path, snapshot.model_dump_json(indent=2))
        logger.debug(f"Saved project {state.id} ({state.status.value}, {state.progress}%)")
        return path

    def load(self, project_id: str) -> ProjectState:
        """Load the last saved state of a project.

        Raises:
            NotFoundError: If no snapshot exists for ``project_id``.
            ValidationError: If the snapshot is unreadable or of an unknown
                schema version.
        """
        path = self.snapshot_path(project_id)
        if not path.exists():
            raise NotFoundError(f"Project not found: {project_id}")

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValidationError(f"Corrupt project snapshot: {path}", details=str(e)) from e

        version = raw.get("schema_version")
        if version != SNAPSHOT_SCHEMA_VERSION:
            raise ValidationError(
                f"Unsupported snapshot schema version {version!r} for project {project_id}",
                details=f"expected {SNAPSHOT_SCHEMA_VERSION}",
            )

        try:
            snapshot = ProjectSnapshot.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid project snapshot: {path}", details=str(e)) from e

        return snapshot.to_state()

    def list_ids(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(
            child.name for child in self.root.iterdir()
            if (child / SNAPSHOT_FILENAME).exists()
        )


HandleT = TypeVar("HandleT")


class ProjectRegistry(Generic[HandleT]):
    """Process-local cache of open project handles, backed by a store.

    ``factory`` turns a loaded state into a handle (normally an
    ``MVPipeline``); handles are created once per id and reused.
    """

    def __init__(self, store: ProjectStore, factory: Callable[[ProjectState], HandleT]) -> None:
        self.store = store
        self._factory = factory
        self._handles: Dict[str, HandleT] = {}
        self._lock = threading.Lock()

    def register(self, project_id: str, handle: HandleT) -> HandleT:
        with self._lock:
            self._handles[project_id] = handle
        return handle

    def get(self, project_id: str) -> HandleT:
        """Return the handle for ``project_id``, loading it on first use.

        Raises:
            NotFoundError: If the project is unknown.
        """
        with self._lock:
            handle = self._handles.get(project_id)
            if handle is None:
                handle = self._factory(self.store.load(project_id))
                self._handles[project_id] = handle
            return handle

    def forget(self, project_id: str) -> None:
        with self._lock:
            self._handles.pop(project_id, None)
