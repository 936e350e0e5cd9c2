"""Error taxonomy shared by the stores, the services and the HTTP layer.

Every error carries a ``kind`` and the HTTP ``status_code`` it maps to, so the
API can translate any :class:`MindMapError` into a response without looking
at its internals.
"""

from __future__ import annotations


class MindMapError(Exception):
    """Base exception for mind-map operations."""

    kind = "Internal"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.message, "kind": self.kind}


class ValidationError(MindMapError, ValueError):
    """Malformed input: empty title, bad enum value, out-of-range width."""

    kind = "Validation"
    status_code = 400


class NotFoundError(MindMapError, LookupError):
    """A referenced node, relationship or attachment does not exist."""

    kind = "NotFound"
    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id!r}")


class ConflictError(MindMapError):
    """A relationship already exists between the same ordered node pair."""

    kind = "Conflict"
    status_code = 409


class CycleRejectedError(MindMapError):
    """A re-parent would make a node its own ancestor."""

    kind = "CycleRejected"
    status_code = 400

    def __init__(self, node_id: str, new_parent_id: str):
        self.node_id = node_id
        self.new_parent_id = new_parent_id
        super().__init__("Cannot move a node into its own descendant")


class ForbiddenError(MindMapError):
    """Attempt to delete a derived parent-child edge as a relationship."""

    kind = "Forbidden"
    status_code = 400


class InternalError(MindMapError):
    """Storage or transaction failure.  Safe to retry."""

    kind = "Internal"
    status_code = 500
