"""Dataclass models representing DB rows.

These are plain Python objects – not ORM models.  The DB layer serialises /
deserialises to and from these types.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    ROOT = "ROOT"
    CATEGORY = "CATEGORY"
    TOPIC = "TOPIC"
    SUBTOPIC = "SUBTOPIC"
    DETAIL = "DETAIL"
    NOTE = "NOTE"
    EVENT = "EVENT"
    DECISION = "DECISION"
    POLICY = "POLICY"
    BATTLE = "BATTLE"
    TREATY = "TREATY"
    REVELATION = "REVELATION"
    MIRACLE = "MIRACLE"
    LESSON = "LESSON"


class NodeShape(str, Enum):
    CIRCLE = "circle"
    RECT = "rect"
    DIAMOND = "diamond"


class RelationType(str, Enum):
    RELATED = "RELATED"
    PREREQUISITE = "PREREQUISITE"
    LEADS_TO = "LEADS_TO"
    EXAMPLE_OF = "EXAMPLE_OF"
    CONTRADICTS = "CONTRADICTS"
    ELABORATES = "ELABORATES"
    PART_OF = "PART_OF"


class LineStyle(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"


class AttachmentType(str, Enum):
    AYAH = "AYAH"
    HADITH = "HADITH"
    NOTE = "NOTE"
    LINK = "LINK"
    IMAGE = "IMAGE"


# Metadata columns persisted as JSON-encoded ordered lists of strings.
LIST_FIELDS: tuple[str, ...] = (
    "participants",
    "alternatives",
    "outcomes",
    "moral_lessons",
    "modern_apps",
    "sources",
)


def parse_json_list(raw: str | None) -> list[str]:
    """Decode a JSON-encoded list of strings.

    Empty, malformed or non-list values read as ``[]`` rather than failing the
    whole row.
    """
    if not raw or not raw.strip():
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed JSON list: %.80r", raw)
        return []
    if not isinstance(parsed, list):
        return []
    return [str(item) for item in parsed]


def dump_json_list(items: Iterable[str] | str | None) -> str | None:
    """Encode a list for storage.  A string is assumed to be JSON already."""
    if items is None:
        return None
    if isinstance(items, str):
        return json.dumps(parse_json_list(items), ensure_ascii=False)
    return json.dumps([str(i) for i in items], ensure_ascii=False)


@dataclass
class Node:
    id: str
    lesson_id: int
    parent_id: str | None
    level: int
    order: int
    title_ar: str
    title_en: str
    type: NodeType
    color: str
    shape: NodeShape
    is_published: bool
    created_at: int
    updated_at: int
    description_ar: str | None = None
    description_en: str | None = None
    icon: str | None = None
    position_x: float | None = None
    position_y: float | None = None
    date_hijri: str | None = None
    date_gregorian: str | None = None
    location: str | None = None
    participants: list[str] = field(default_factory=list)
    decision: str | None = None
    alternatives: list[str] = field(default_factory=list)
    outcomes: list[str] = field(default_factory=list)
    moral_lessons: list[str] = field(default_factory=list)
    modern_apps: list[str] = field(default_factory=list)
    security_impact: str | None = None
    sources: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------
    @property
    def has_saved_position(self) -> bool:
        return self.position_x is not None and self.position_y is not None

    def title(self, locale: str = "en") -> str:
        return self.title_ar if locale == "ar" else self.title_en

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible field set with camelCase keys (HTTP/export shape)."""
        return {
            "id": self.id,
            "lessonId": self.lesson_id,
            "parentId": self.parent_id,
            "level": self.level,
            "order": self.order,
            "titleAr": self.title_ar,
            "titleEn": self.title_en,
            "descriptionAr": self.description_ar,
            "descriptionEn": self.description_en,
            "type": self.type.value,
            "color": self.color,
            "icon": self.icon,
            "shape": self.shape.value,
            "isPublished": self.is_published,
            "positionX": self.position_x,
            "positionY": self.position_y,
            "dateHijri": self.date_hijri,
            "dateGregorian": self.date_gregorian,
            "location": self.location,
            "participants": list(self.participants),
            "decision": self.decision,
            "alternatives": list(self.alternatives),
            "outcomes": list(self.outcomes),
            "moralLessons": list(self.moral_lessons),
            "modernApps": list(self.modern_apps),
            "securityImpact": self.security_impact,
            "sources": list(self.sources),
            "metadata": dict(self.metadata),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class Relationship:
    id: str
    lesson_id: int
    from_node_id: str
    to_node_id: str
    type: RelationType
    color: str
    line_width: int
    line_style: LineStyle
    created_at: int
    label_ar: str | None = None
    label_en: str | None = None
    source_handle: str | None = None
    target_handle: str | None = None

    def label(self, locale: str = "en") -> str | None:
        return self.label_ar if locale == "ar" else self.label_en

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "lessonId": self.lesson_id,
            "fromNodeId": self.from_node_id,
            "toNodeId": self.to_node_id,
            "type": self.type.value,
            "color": self.color,
            "lineWidth": self.line_width,
            "lineStyle": self.line_style.value,
            "labelAr": self.label_ar,
            "labelEn": self.label_en,
            "sourceHandle": self.source_handle,
            "targetHandle": self.target_handle,
            "createdAt": self.created_at,
        }


@dataclass
class Attachment:
    id: str
    node_id: str
    type: AttachmentType
    title_ar: str
    title_en: str
    order: int
    created_at: int
    content_ar: str | None = None
    content_en: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "nodeId": self.node_id,
            "type": self.type.value,
            "titleAr": self.title_ar,
            "titleEn": self.title_en,
            "contentAr": self.content_ar,
            "contentEn": self.content_en,
            "url": self.url,
            "order": self.order,
            "createdAt": self.created_at,
        }


@dataclass
class TreePayload:
    """Flat node and relationship sets for one lesson."""

    nodes: list[Node] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "relationships": [r.to_dict() for r in self.relationships],
        }


@dataclass
class RemovalResult:
    deleted_node_ids: list[str] = field(default_factory=list)
    deleted_relationship_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "deletedNodeIds": list(self.deleted_node_ids),
            "deletedRelationshipIds": list(self.deleted_relationship_ids),
        }


@dataclass
class PositionResult:
    updated: int = 0
    missing: list[str] = field(default_factory=list)
