"""Bulk Operation Service: publish / unpublish / delete / export a node set.

The whole batch runs in one transaction.  Unknown IDs are skipped and
reported in ``not_found``; a storage failure aborts the batch.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from enum import Enum
from time import time
from typing import Any, Iterable, Optional

from ebad.db.connection import transaction
from ebad.db.nodes import delete_subtrees, get_nodes, subtree_ids
from ebad.errors import ValidationError
from ebad.mindmap.mutations import lesson_locks

logger = logging.getLogger(__name__)


class BulkOperation(str, Enum):
    PUBLISH = "publish"
    UNPUBLISH = "unpublish"
    DELETE = "delete"
    EXPORT = "export"


@dataclass
class BulkResult:
    operation: BulkOperation
    affected: int = 0
    not_found: list[str] = field(default_factory=list)
    deleted_node_ids: list[str] = field(default_factory=list)
    data: Optional[list[dict[str, Any]]] = None
    dry_run: bool = False

    def to_dict(self) -> dict[str, Any]:
        if self.operation is BulkOperation.EXPORT:
            return {
                "operation": self.operation.value,
                "data": self.data or [],
                "count": self.affected,
                "notFound": list(self.not_found),
            }
        payload: dict[str, Any] = {
            "operation": self.operation.value,
            "affected": self.affected,
            "notFound": list(self.not_found),
        }
        if self.operation is BulkOperation.DELETE:
            payload["deletedNodeIds"] = list(self.deleted_node_ids)
            payload["dryRun"] = self.dry_run
        return payload


def run_bulk(
    conn: sqlite3.Connection,
    operation: BulkOperation | str,
    node_ids: Iterable[str],
    dry_run: bool = False,
) -> BulkResult:
    """Apply *operation* to every node in *node_ids*.

    * ``publish`` / ``unpublish`` set the flag on exactly the given nodes;
      ``affected`` counts every existing target, changed or not.
    * ``delete`` removes each node's subtree; ``affected`` counts distinct
      removed nodes, so a selected child of a selected parent counts once.
      With ``dry_run`` nothing is removed and ``affected`` is the count that
      would be.
    * ``export`` returns the nodes' full field sets (no relationships).

    Raises:
        ValidationError: Unknown operation or empty ID set.
    """
    try:
        op = BulkOperation(operation)
    except ValueError:
        raise ValidationError(f"Invalid operation: {operation!r}") from None

    ids = list(dict.fromkeys(node_ids))
    if not ids:
        raise ValidationError("At least one node ID is required")

    found = get_nodes(conn, ids)
    result = BulkResult(
        operation=op,
        not_found=[nid for nid in ids if nid not in found],
        dry_run=dry_run and op is BulkOperation.DELETE,
    )
    targets = [nid for nid in ids if nid in found]

    if op is BulkOperation.EXPORT:
        result.data = [found[nid].to_dict() for nid in targets]
        result.affected = len(targets)
        return result

    if op is BulkOperation.DELETE and dry_run:
        result.deleted_node_ids = subtree_ids(conn, targets)
        result.affected = len(result.deleted_node_ids)
        return result

    lessons = {found[nid].lesson_id for nid in targets}
    with lesson_locks.hold(*lessons), transaction(conn):
        if op is BulkOperation.DELETE:
            removed: dict[str, None] = {}
            for nid in targets:
                if nid in removed:
                    continue
                for gone in delete_subtrees(conn, [nid]).deleted_node_ids:
                    removed[gone] = None
            result.deleted_node_ids = list(removed)
            result.affected = len(removed)
        elif targets:
            placeholders = ",".join("?" for _ in targets)
            conn.execute(
                f"""
                UPDATE mindmap_nodes SET is_published = ?, updated_at = ?
                WHERE  id IN ({placeholders})
                """,  # noqa: S608
                (1 if op is BulkOperation.PUBLISH else 0, int(time()), *targets),
            )
            result.affected = len(targets)

    logger.info(
        "Bulk %s: %d affected, %d not found",
        op.value,
        result.affected,
        len(result.not_found),
    )
    return result
