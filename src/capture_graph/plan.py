from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .builder import CaptureGraphBuilder
from .models import ObjectRef

logger = logging.getLogger(__name__)


class CaptureRequest(BaseModel):
    strategy: str
    params: dict[str, str] = Field(default_factory=dict)


class RecordRequest(BaseModel):
    container: str
    sys_id: str


class DataRequest(BaseModel):
    container: str
    filters: dict[str, Any] = Field(default_factory=dict)


class CapturePlan(BaseModel):
    """A capture script expressed as data; ``bundle`` may be overridden at run time."""

    bundle: str | None = None
    captures: list[CaptureRequest] = Field(default_factory=list)
    records: list[RecordRequest] = Field(default_factory=list)
    data: list[DataRequest] = Field(default_factory=list)


def load_plan(path: str | Path) -> CapturePlan:
    return CapturePlan.model_validate_json(Path(path).expanduser().read_text(encoding="utf-8"))


def apply_plan(builder: CaptureGraphBuilder, plan: CapturePlan) -> int:
    """Queue everything the plan names; returns the builder's object count."""
    for req in plan.captures:
        builder.begin_traversal(req.strategy, req.params)
    for rec in plan.records:
        builder.record(ObjectRef(store_identifier=rec.sys_id, container_name=rec.container))
    for data in plan.data:
        builder.capture_data_records(data.container, data.filters)
    logger.info(f"Plan queued {builder.count()} objects")
    return builder.count()
