"""
Admin API Routes Package.

Aggregates all admin-related API endpoints:
- users: User moderation and team-name maintenance
"""

from fastapi import APIRouter

from app.api.admin import users

# Create main admin router
admin_router = APIRouter()

# Users router (already has prefix in its routes)
admin_router.include_router(users.router)

__all__ = ["admin_router"]
