"""Comment API routes."""
from fastapi import APIRouter, Query, status

from proofboard import policies
from proofboard.api.assets import load_asset
from proofboard.api.deps import Assets, Comments, CurrentUser, authorize, get_membership
from proofboard.schemas.comment import CommentCreate, CommentResponse, CommentThread, CommentUpdate

router = APIRouter()


@router.get("/assets/{asset_id}/comments", response_model=list[CommentThread])
async def list_comments(
    asset_id: int,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
    version: int | None = Query(None, ge=1),
    all_versions: bool = Query(False, alias="all"),
    resolved: bool | None = None,
):
    """Threads on the current version unless `version` or `all` is given."""
    asset, _, _ = await load_asset(assets, asset_id, current_user)
    return await comments.list_comments(
        asset,
        viewer=current_user,
        version=version,
        all_versions=all_versions,
        resolved=resolved,
    )


@router.post(
    "/assets/{asset_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    asset_id: int,
    data: CommentCreate,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    asset, _, member = await load_asset(assets, asset_id, current_user)
    authorize(policies.can_comment(current_user, asset, member))

    comment = await comments.create(
        asset,
        current_user,
        content=data.content,
        rectangle=data.rectangle.model_dump() if data.rectangle else None,
        video_timestamp=data.video_timestamp,
        page_number=data.page_number,
        parent_id=data.parent_id,
        temp_image_ids=data.temp_image_ids,
    )
    await comments.commit()
    return await comments.get_comment(comment.id)


async def load_comment(comment_id: int, current_user, assets, comments):
    comment = await comments.get_comment(comment_id)
    asset = await assets.get_asset(comment.asset_id)
    member = await get_membership(assets.db, asset.project_id, current_user.id)
    authorize(policies.can_view_asset(current_user, asset, member))
    return comment, asset, member


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    comment, _, _ = await load_comment(comment_id, current_user, assets, comments)
    authorize(policies.can_update_comment(current_user, comment), "Only the author can edit a comment.")
    await comments.update(comment, data.content)
    return await comments.get_comment(comment.id)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    comment, _, member = await load_comment(comment_id, current_user, assets, comments)
    authorize(policies.can_delete_comment(current_user, comment, member))
    await comments.delete(comment)


@router.post("/comments/{comment_id}/resolve", response_model=CommentResponse)
async def resolve_comment(
    comment_id: int,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    comment, asset, member = await load_comment(comment_id, current_user, assets, comments)
    authorize(policies.can_resolve_comment(current_user, asset, member))
    await comments.resolve(comment, current_user)
    return await comments.get_comment(comment.id)


@router.post("/comments/{comment_id}/unresolve", response_model=CommentResponse)
async def unresolve_comment(
    comment_id: int,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    comment, asset, member = await load_comment(comment_id, current_user, assets, comments)
    authorize(policies.can_resolve_comment(current_user, asset, member))
    await comments.unresolve(comment)
    return await comments.get_comment(comment.id)
