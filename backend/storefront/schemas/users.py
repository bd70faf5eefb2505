"""
Schemas for administrative user management.
"""

from pydantic import BaseModel, Field

from storefront.schemas.auth import UserResponse


class UserListResponse(BaseModel):
    """Paginated account listing."""

    users: list[UserResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)


class UserStatisticsResponse(BaseModel):
    total_users: int = Field(..., ge=0)
    active_users: int = Field(..., ge=0)
    inactive_users: int = Field(..., ge=0)
    admin_users: int = Field(..., ge=0)
    customer_users: int = Field(..., ge=0)
