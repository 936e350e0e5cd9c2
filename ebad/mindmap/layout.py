"""Layout Engine: deterministic radial fallback positions.

Nodes are grouped by ``level``; level ``L`` sits on a circle of radius
``L * radius_increment`` around a fixed centre, spaced ``2π / count`` apart
starting at angle 0, in the order the nodes were given.  A node with a saved
position keeps it but still occupies its slot, so placing one node by hand
never moves the others.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional

from ebad.config import settings
from ebad.db.models import Node


@dataclass(frozen=True)
class Position:
    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


def radial_layout(
    nodes: Iterable[Node],
    center: Optional[tuple[float, float]] = None,
    radius_increment: Optional[float] = None,
) -> dict[str, Position]:
    """Return ``{node_id: Position}`` for every node.

    Pure function of the node list (order, levels and saved positions).
    """
    cx, cy = center or (settings.layout_center_x, settings.layout_center_y)
    step = settings.layout_radius_increment if radius_increment is None else radius_increment

    by_level: dict[int, list[Node]] = {}
    for node in nodes:
        by_level.setdefault(node.level or 0, []).append(node)

    positions: dict[str, Position] = {}
    for level, level_nodes in by_level.items():
        radius = level * step
        angle_step = 2 * math.pi / max(len(level_nodes), 1)
        for index, node in enumerate(level_nodes):
            if node.has_saved_position:
                positions[node.id] = Position(node.position_x, node.position_y)  # type: ignore[arg-type]
                continue
            angle = index * angle_step
            positions[node.id] = Position(
                cx + radius * math.cos(angle),
                cy + radius * math.sin(angle),
            )
    return positions
