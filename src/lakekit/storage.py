"""
Snapshot persistence.

The whole store state is written as one JSON document after every
mutation and read back at startup:

    {
        "permissions": [...],
        "roles": {"analyst": ["alice", "bob"]},
        "tags": {"department": {"key": "department", "values": ["sales"], "description": null}},
        "session_context": {"user_region": "west"}
    }

Role members are written sorted so the document is stable across runs.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Union

from lakekit.store import StoreSnapshot

logger = logging.getLogger(__name__)


def snapshot_to_document(snapshot: StoreSnapshot) -> Dict[str, Any]:
    """Serialize a snapshot into the JSON document layout."""
    document = snapshot.model_dump(mode="json")
    document["roles"] = {name: sorted(members) for name, members in snapshot.roles.items()}
    return document


def snapshot_from_document(document: Dict[str, Any]) -> StoreSnapshot:
    """
    Rebuild a snapshot from the JSON document layout.

    Raises:
        pydantic.ValidationError: If the document structure is invalid
    """
    return StoreSnapshot.model_validate(document)


class FileStorage:
    """Reads and writes store snapshots to a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> StoreSnapshot:
        """
        Load the stored snapshot.

        Returns:
            The stored snapshot, or an empty one when the file does not exist

        Raises:
            json.JSONDecodeError: If the file contains invalid JSON
            pydantic.ValidationError: If the document structure is invalid
        """
        if not self.path.exists():
            logger.info(f"No state file at {self.path}, starting empty")
            return StoreSnapshot()

        content = self.path.read_text(encoding="utf-8")
        snapshot = snapshot_from_document(json.loads(content))
        logger.info(f"Loaded state from {self.path}: {len(snapshot.permissions)} permissions")
        return snapshot

    def save(self, snapshot: StoreSnapshot) -> None:
        """
        Write a snapshot, replacing the previous file atomically.

        Parent directories are created as needed.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(snapshot_to_document(snapshot), indent=2)

        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(content, encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved state to {self.path}")
