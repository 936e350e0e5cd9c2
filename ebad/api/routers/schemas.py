"""Pydantic request schemas shared by the admin and student routers.

Bodies use camelCase on the wire (``titleAr``, ``parentId``...) and are
dumped by field name so they map straight onto the store keyword arguments.
Field-level checks (empty titles, colour format, enum values the store knows
about) stay in the store so the CLI gets the same validation.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ebad.db.models import AttachmentType, LineStyle, NodeShape, NodeType, RelationType
from ebad.mindmap.bulk import BulkOperation


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class NodeFields(CamelModel):
    """Optional display and historical fields shared by create and update."""

    description_ar: Optional[str] = None
    description_en: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    shape: Optional[NodeShape] = None
    is_published: Optional[bool] = None
    position_x: Optional[float] = None
    position_y: Optional[float] = None
    order: Optional[int] = None
    date_hijri: Optional[str] = None
    date_gregorian: Optional[str] = None
    location: Optional[str] = None
    participants: Optional[list[str]] = None
    decision: Optional[str] = None
    alternatives: Optional[list[str]] = None
    outcomes: Optional[list[str]] = None
    moral_lessons: Optional[list[str]] = None
    modern_apps: Optional[list[str]] = None
    security_impact: Optional[str] = None
    sources: Optional[list[str]] = None
    metadata: Optional[dict[str, Any]] = None


class NodeCreate(NodeFields):
    lesson_id: int = Field(gt=0)
    parent_id: Optional[str] = None
    title_ar: str
    title_en: str
    type: NodeType = NodeType.TOPIC

    def store_fields(self) -> dict[str, Any]:
        """Optional fields the caller actually sent, minus the positional ones."""
        return self.model_dump(
            exclude_none=True,
            exclude={"lesson_id", "parent_id", "title_ar", "title_en", "type"},
        )


class NodeUpdate(NodeFields):
    """Patch body.  ``parentId``/``lessonId``/``level`` are unknown keys here."""

    title_ar: Optional[str] = None
    title_en: Optional[str] = None
    type: Optional[NodeType] = None


class RelationshipCreate(CamelModel):
    from_node_id: str
    to_node_id: str
    type: RelationType = RelationType.RELATED
    color: Optional[str] = None
    line_width: Optional[int] = None
    line_style: Optional[LineStyle] = None
    label_ar: Optional[str] = None
    label_en: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class ReorderRequest(CamelModel):
    node_id: str
    new_parent_id: Optional[str] = None
    new_order: int = Field(default=0, ge=0)


class PositionUpdate(CamelModel):
    id: str
    position_x: float
    position_y: float


class PositionsRequest(CamelModel):
    updates: list[PositionUpdate] = Field(min_length=1)


class BulkRequest(CamelModel):
    operation: BulkOperation
    node_ids: list[str] = Field(min_length=1)
    dry_run: bool = False


class AttachmentCreate(CamelModel):
    node_id: str
    type: AttachmentType
    title_ar: str
    title_en: str
    content_ar: Optional[str] = None
    content_en: Optional[str] = None
    url: Optional[str] = None
    order: int = Field(default=0, ge=0)
