"""
Request and response models for the host protocol (plugin handlers and HTTP shim).

Field names follow the host's camelCase spelling; snake_case is accepted too.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _HostModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class StoreRequest(_HostModel):
    text: str
    # Any value is accepted; unknown categories are normalized to 'other' downstream
    category: Any = None
    importance: Optional[float] = None
    session_key: Optional[str] = Field(default=None, alias="sessionKey")
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('text')
    @classmethod
    def text_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('text cannot be empty')
        return v


class RecallRequest(_HostModel):
    query: str = ""
    limit: Optional[int] = None
    mode: Literal["auto", "structured", "semantic"] = "auto"
    category: Optional[str] = None
    date_from: Optional[str] = Field(default=None, alias="dateFrom")
    date_to: Optional[str] = Field(default=None, alias="dateTo")
    filter_noise: bool = Field(default=True, alias="filterNoise")
    match: Literal["all", "any"] = "all"


class ForgetRequest(_HostModel):
    memory_id: Optional[str] = Field(default=None, alias="memoryId")
    query: Optional[str] = None
    mode: Optional[Literal["structured", "semantic"]] = None


class MemoryResponse(_HostModel):
    id: str
    text: str
    category: str
    importance: float
    createdAt: str
    updatedAt: str
    sessionKey: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    hasEmbedding: bool = False
    score: Optional[float] = None


class ForgetResponse(BaseModel):
    deleted: int


class StatsResponse(BaseModel):
    total: int
    withEmbeddings: int
    byCategory: Dict[str, int]
    vectorAvailable: bool
    pendingEmbeddings: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    vector_available: bool
    memory_count: int


class ErrorResponse(BaseModel):
    error: str
    detail: str
