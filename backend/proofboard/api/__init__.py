"""API routes."""
from fastapi import APIRouter

from proofboard.api import asset_types, assets, auth, comment_images, comments, projects, users

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, tags=["Users"])
api_router.include_router(projects.router, prefix="/projects", tags=["Projects"])
api_router.include_router(assets.router, tags=["Assets"])
api_router.include_router(comments.router, tags=["Comments"])
api_router.include_router(comment_images.router, tags=["Comment Images"])
api_router.include_router(asset_types.router, prefix="/asset-types", tags=["Asset Types"])
