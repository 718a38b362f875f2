"""Pydantic schemas for service inputs and outputs."""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import TaskPriority, TaskStatus


class ImportMode(str, Enum):
    """How extracted tasks are folded into a project's task list."""

    MERGE = "merge"  # update or skip matching tasks, create the rest
    CREATE_NEW = "create_new"  # always create


# Decision schemas
class DecisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    title: str
    description: Optional[str] = None
    reason: Optional[str] = None
    consequences: Optional[str] = None
    created_at: Optional[datetime] = None


class SearchResult(BaseModel):
    """A decision with its relevance score for a query."""

    decision: DecisionOut
    score: float = Field(..., ge=0.0, le=1.0)
    snippet: Optional[str] = None


class SearchResponse(BaseModel):
    results: list[SearchResult]
    answer: Optional[str] = None
    mode: Literal["semantic", "text"]


class SearchStatus(BaseModel):
    ai_search_available: bool
    text_search_available: bool = True
    embedding_model: Optional[str] = None


class EmbedProjectResult(BaseModel):
    total: int
    embedded: int


# Task schemas
class TaskEntry(BaseModel):
    """One task extracted from a transcript or an image."""

    title: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM


class ReconcileStats(BaseModel):
    created: int = 0
    updated: int = 0
    skipped: int = 0
    total: int = 0


class ReconcileResult(BaseModel):
    stats: ReconcileStats
    mode: ImportMode


# Assistant schemas
class AssistantContext(BaseModel):
    """Task counts the assistant's answer was based on."""

    total_pending: int
    high_priority: int
    completed: int


class AssistantAnswer(BaseModel):
    answer: str
    context: Optional[AssistantContext] = None
