"""Mind-map services: hierarchy mutations, bulk operations, assembly, layout."""

from ebad.mindmap.bulk import BulkOperation, BulkResult, run_bulk
from ebad.mindmap.layout import Position, radial_layout
from ebad.mindmap.mutations import add_child, preview_removal, remove_subtree, reparent
from ebad.mindmap.tree import Forest, assemble, build_forest

__all__ = [
    "BulkOperation",
    "BulkResult",
    "run_bulk",
    "Position",
    "radial_layout",
    "add_child",
    "preview_removal",
    "remove_subtree",
    "reparent",
    "Forest",
    "assemble",
    "build_forest",
]
