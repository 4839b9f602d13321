"""Comment image routes.

Images are uploaded before the comment exists and kept under the uploader's
temp folder; creating the comment moves them next to the asset. Temp images
that are never attached are purged by the maintenance task.
"""
from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import FileResponse

from proofboard import policies
from proofboard.api.comments import load_comment
from proofboard.api.deps import Assets, Comments, CurrentUser, Storage, authorize
from proofboard.config import get_settings
from proofboard.schemas.comment import CommentResponse, MessageResponse, TempImageResponse
from proofboard.services.exceptions import FileValidationError, NotFoundError
from proofboard.utils.rate_limiter import UPLOAD_LIMIT, limiter

settings = get_settings()

router = APIRouter()


@router.post("/comment-images/temp", response_model=TempImageResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(UPLOAD_LIMIT)
async def upload_temp_image(
    request: Request,
    current_user: CurrentUser,
    store: Storage,
    image: UploadFile = File(...),
):
    """Upload an image to attach to a comment that is still being written."""
    if image.content_type not in settings.temp_image_types_list:
        raise FileValidationError(["Image must be one of: " + ", ".join(settings.temp_image_types_list)])

    content = await image.read(settings.temp_image_max_size + 1)
    if len(content) > settings.temp_image_max_size:
        raise FileValidationError([
            f"Image exceeds maximum allowed size of {settings.temp_image_max_size // (1024 * 1024)} MB."
        ])

    temp_id, _ = await store.save_temp_image(current_user.id, content, image.filename or "image")
    return TempImageResponse(
        temp_id=temp_id,
        filename=image.filename or "image",
        preview_url=f"{settings.api_prefix}/comment-images/temp/{temp_id}",
        size=len(content),
    )


@router.get("/comment-images/temp/{temp_id}")
async def show_temp_image(temp_id: str, current_user: CurrentUser, store: Storage):
    path = store.find_temp_image(current_user.id, temp_id)
    if path is None:
        raise NotFoundError("Temporary image not found or expired.")
    return FileResponse(path)


@router.delete("/comment-images/temp/{temp_id}", response_model=MessageResponse)
async def delete_temp_image(temp_id: str, current_user: CurrentUser, store: Storage):
    path = store.find_temp_image(current_user.id, temp_id)
    if path is None:
        raise NotFoundError("Temporary image not found or already deleted.")
    await store.delete_file(str(path.relative_to(store.base_dir)))
    return MessageResponse(message="Temporary image deleted successfully.")


@router.delete("/comments/{comment_id}/images/{index}", response_model=CommentResponse)
async def delete_comment_image(
    comment_id: int,
    index: int,
    current_user: CurrentUser,
    assets: Assets,
    comments: Comments,
):
    comment, _, _ = await load_comment(comment_id, current_user, assets, comments)
    authorize(policies.can_manage_comment_images(current_user, comment))
    await comments.remove_image(comment, index)
    return await comments.get_comment(comment.id)
