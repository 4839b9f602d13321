"""Asset type registry routes."""
from fastapi import APIRouter

from proofboard.api.deps import Registry
from proofboard.schemas.asset import AssetTypeResponse

router = APIRouter()


@router.get("", response_model=list[AssetTypeResponse])
async def list_asset_types(registry: Registry):
    """Every registered type with its limits and annotation capabilities."""
    return registry.describe()


@router.get("/mime-types", response_model=list[str])
async def list_allowed_mime_types(registry: Registry):
    return registry.get_all_allowed_mime_types()
