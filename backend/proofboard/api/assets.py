"""Asset review API routes."""
from datetime import datetime

from fastapi import APIRouter, BackgroundTasks, File, Form, Query, Request, UploadFile, status
from sqlalchemy import select

from proofboard import policies
from proofboard.api.deps import Assets, CurrentUser, DbSession, Registry, Storage, authorize, get_membership
from proofboard.api.projects import load_project
from proofboard.models.asset import REVIEWER_VISIBLE_STATUSES, Asset, AssetStatus
from proofboard.models.project import Project, ProjectMember
from proofboard.schemas.asset import (
    AssetDetailResponse,
    AssetResponse,
    AssetUpdate,
    AssetVersionResponse,
    DecisionRequest,
    DownloadResponse,
    LockRequest,
)
from proofboard.services.asset_service import AssetService
from proofboard.services.asset_types import AssetTypeRegistry
from proofboard.tasks.thumbnails import enqueue_thumbnail
from proofboard.utils.rate_limiter import UPLOAD_LIMIT, limiter

router = APIRouter()


async def load_asset(
    service: AssetService,
    asset_id: int,
    user,
) -> tuple[Asset, Project, ProjectMember | None]:
    asset = await service.get_asset(asset_id)
    project = await load_project(service.db, asset.project_id)
    member = await get_membership(service.db, project.id, user.id)
    authorize(policies.can_view_asset(user, asset, member))
    return asset, project, member


async def commit_and_schedule(background_tasks: BackgroundTasks, service: AssetService) -> None:
    # Jobs reference version rows that must be committed first.
    for job in await service.commit():
        background_tasks.add_task(enqueue_thumbnail, job)


def asset_detail(asset: Asset, registry: AssetTypeRegistry, versions=()) -> AssetDetailResponse:
    return AssetDetailResponse(
        **AssetResponse.model_validate(asset).model_dump(),
        type_display_name=registry.get_display_name(asset.type),
        annotation_capabilities=registry.annotation_capabilities(asset.type).as_dict(),
        versions=[AssetVersionResponse.model_validate(v) for v in versions],
    )


@router.get("/assets", response_model=list[AssetResponse])
async def list_all_assets(
    current_user: CurrentUser,
    db: DbSession,
    asset_status: list[AssetStatus] | None = Query(None, alias="status"),
    asset_type: str | None = Query(None, alias="type"),
    search: str | None = Query(None, max_length=200),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Assets across every project the user can see."""
    stmt = select(Asset)
    if not current_user.is_admin:
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.id)
        stmt = stmt.where(Asset.project_id.in_(member_of))
        if current_user.is_reviewer:
            stmt = stmt.where(Asset.status.in_(REVIEWER_VISIBLE_STATUSES))

    if asset_status:
        stmt = stmt.where(Asset.status.in_(asset_status))
    if asset_type:
        stmt = stmt.where(Asset.type == asset_type)
    if search:
        stmt = stmt.where(Asset.title.ilike(f"%{search}%"))

    result = await db.execute(
        stmt.order_by(Asset.updated_at.desc(), Asset.id.desc()).limit(limit).offset(offset)
    )
    return result.scalars().all()


@router.get("/projects/{project_id}/assets", response_model=list[AssetResponse])
async def list_project_assets(
    project_id: int,
    current_user: CurrentUser,
    db: DbSession,
    asset_status: AssetStatus | None = Query(None, alias="status"),
    asset_type: str | None = Query(None, alias="type"),
):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_view_project(current_user, member))

    stmt = select(Asset).where(Asset.project_id == project.id)
    if current_user.is_reviewer:
        stmt = stmt.where(Asset.status.in_(REVIEWER_VISIBLE_STATUSES))
    if asset_status is not None:
        stmt = stmt.where(Asset.status == asset_status)
    if asset_type:
        stmt = stmt.where(Asset.type == asset_type)

    result = await db.execute(stmt.order_by(Asset.created_at.desc(), Asset.id.desc()))
    return result.scalars().all()


@router.post(
    "/projects/{project_id}/assets",
    response_model=AssetDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(UPLOAD_LIMIT)
async def upload_asset(
    request: Request,
    project_id: int,
    current_user: CurrentUser,
    service: Assets,
    store: Storage,
    registry: Registry,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    title: str | None = Form(None, max_length=255),
    description: str | None = Form(None),
    deadline: datetime | None = Form(None),
):
    """Upload a new asset; its type is detected from the file."""
    project = await load_project(service.db, project_id)
    member = await get_membership(service.db, project.id, current_user.id)
    authorize(policies.can_upload_asset(current_user, member))

    staged = await store.stage_upload(file)
    asset = await service.create_asset(project, current_user, staged, title, description, deadline)
    await commit_and_schedule(background_tasks, service)
    return asset_detail(asset, registry, await service.list_versions(asset))


@router.get("/assets/{asset_id}", response_model=AssetDetailResponse)
async def get_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    registry: Registry,
):
    """Asset with its versions. Opening a pending asset as an approver starts the review."""
    asset, _, _ = await load_asset(service, asset_id, current_user)

    if current_user.is_reviewer:
        versions = [await service.get_version(asset)]
    else:
        await service.mark_in_review(asset, current_user)
        versions = await service.list_versions(asset)
    return asset_detail(asset, registry, versions)


@router.patch("/assets/{asset_id}", response_model=AssetResponse)
async def update_asset(
    asset_id: int,
    data: AssetUpdate,
    current_user: CurrentUser,
    service: Assets,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_update_asset(current_user, asset, member))
    return await service.update_asset(asset, **data.model_dump(exclude_unset=True))


@router.delete("/assets/{asset_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_asset(asset_id: int, current_user: CurrentUser, service: Assets):
    asset, project, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_delete_asset(current_user, project, member))
    await service.delete_asset(asset)


@router.get("/assets/{asset_id}/versions", response_model=list[AssetVersionResponse])
async def list_versions(asset_id: int, current_user: CurrentUser, service: Assets):
    asset, _, _ = await load_asset(service, asset_id, current_user)
    if current_user.is_reviewer:
        return [await service.get_version(asset)]
    return await service.list_versions(asset)


@router.post(
    "/assets/{asset_id}/versions",
    response_model=AssetVersionResponse,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(UPLOAD_LIMIT)
async def upload_version(
    request: Request,
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    store: Storage,
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    version_notes: str | None = Form(None, max_length=1000),
):
    """Upload the next version of an unlocked asset."""
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_upload_version(current_user, asset, member))

    staged = await store.stage_upload(file)
    version = await service.upload_version(asset, current_user, staged, version_notes)
    await commit_and_schedule(background_tasks, service)
    return version


@router.post("/assets/{asset_id}/approve", response_model=AssetResponse)
async def approve_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    data: DecisionRequest | None = None,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_approve(current_user, member))
    asset = await service.approve(asset, current_user, data.comment if data else None)
    await service.commit()
    return asset


@router.post("/assets/{asset_id}/request-revision", response_model=AssetResponse)
async def request_revision(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    data: DecisionRequest | None = None,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_approve(current_user, member))
    asset = await service.request_revision(asset, current_user, data.comment if data else None)
    await service.commit()
    return asset


@router.post("/assets/{asset_id}/send-to-client", response_model=AssetResponse)
async def send_to_client_review(asset_id: int, current_user: CurrentUser, service: Assets):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(
        policies.can_send_to_client(current_user, member),
        "Only PM or Admin can send assets to client review.",
    )
    asset = await service.send_to_client_review(asset, current_user)
    await service.commit()
    return asset


@router.post("/assets/{asset_id}/reopen", response_model=AssetResponse)
async def reopen_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    data: DecisionRequest | None = None,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_approve(current_user, member))
    asset = await service.reopen(asset, current_user, data.comment if data else None)
    await service.commit()
    return asset


@router.post("/assets/{asset_id}/lock", response_model=AssetResponse)
async def lock_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    data: LockRequest | None = None,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_lock(current_user, member), "Only PM or Admin can lock assets.")
    return await service.lock(asset, current_user, data.reason if data else None)


@router.post("/assets/{asset_id}/unlock", response_model=AssetResponse)
async def unlock_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    data: LockRequest | None = None,
):
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_lock(current_user, member), "Only PM or Admin can unlock assets.")
    return await service.unlock(asset, current_user, data.reason if data else None)


@router.get("/assets/{asset_id}/download", response_model=DownloadResponse)
@router.get("/assets/{asset_id}/download/{version}", response_model=DownloadResponse)
async def download_asset(
    asset_id: int,
    current_user: CurrentUser,
    service: Assets,
    version: int | None = None,
):
    """Download link and standardized filename for a version (latest by default)."""
    asset, _, member = await load_asset(service, asset_id, current_user)
    authorize(policies.can_download(current_user, asset, member))
    return await service.download_info(asset, version)


@router.get("/assets/{asset_id}/history")
async def asset_history(asset_id: int, current_user: CurrentUser, service: Assets):
    asset, _, _ = await load_asset(service, asset_id, current_user)
    return await service.history(asset, viewer=current_user)
