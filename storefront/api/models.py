"""
Pydantic models for storefront API requests and responses.
"""
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from storefront.data.models import InvalidationOperations


class InvalidateRequest(BaseModel):
    """Request body for POST /cache/invalidate."""
    entityId: Optional[Union[str, int]] = Field(default=None, description="Id of the mutated entity")
    productId: Optional[Union[str, int]] = Field(default=None, description="Alias of entityId used by the admin UI")
    action: Optional[str] = Field(default=None, description="create | update | delete")

    @property
    def entity_id(self) -> Optional[str]:
        value = self.entityId if self.entityId not in (None, "") else self.productId
        return None if value in (None, "") else str(value)


class InvalidateResponse(BaseModel):
    """Response body for POST /cache/invalidate."""
    success: bool
    message: str
    operations: InvalidationOperations
    timestamp: str
    error: Optional[str] = None


class RevalidateRequest(BaseModel):
    """Request body for POST /revalidate. Precedence: path, then tag, then tags."""
    path: Optional[str] = None
    tag: Optional[str] = None
    tags: Optional[List[str]] = None
    secret: Optional[str] = None
    type: Literal["page", "layout"] = Field(default="page", description="Path revalidation granularity")


class RevalidateResponse(BaseModel):
    """Response body for a successful revalidation."""
    success: bool = True
    message: str
    revalidated: bool = True
    now: int = Field(description="Server time in epoch milliseconds")


class RebuildRequest(BaseModel):
    """Request body for POST /static-data/rebuild."""
    secret: Optional[str] = None


class RebuildResponse(BaseModel):
    """Response body for POST /static-data/rebuild."""
    success: bool
    written: List[str]
    failed: List[str]
    version: int
    lastUpdated: str
    invalidation: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str = "ok"
