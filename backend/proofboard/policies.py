"""Authorization predicates.

Each check is a plain function of already-loaded state: the acting user,
the target row and the user's membership in the target's project (None when
not a member). Routers load that state and raise PermissionDeniedError when a
check returns False.
"""
from proofboard.models.asset import REVIEWER_VISIBLE_STATUSES, Asset
from proofboard.models.comment import Comment
from proofboard.models.project import MemberRole, Project, ProjectMember
from proofboard.models.user import User


def _is_owner(user: User, project: Project, member: ProjectMember | None) -> bool:
    return project.created_by == user.id or (
        member is not None and member.role_in_project == MemberRole.OWNER
    )


# Users

def can_list_users(user: User) -> bool:
    return user.is_admin or user.is_pm


def can_manage_users(user: User) -> bool:
    return user.is_admin


# Projects

def can_view_project(user: User, member: ProjectMember | None) -> bool:
    return user.is_admin or member is not None


def can_create_project(user: User) -> bool:
    return user.is_admin or user.is_pm


def can_update_project(user: User, project: Project, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    return user.is_pm and _is_owner(user, project, member)


def can_delete_project(user: User) -> bool:
    return user.is_admin


def can_manage_members(user: User, project: Project, member: ProjectMember | None) -> bool:
    return can_update_project(user, project, member)


def can_upload_asset(user: User, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    return (user.is_pm or user.is_creative) and member is not None


# Assets

def can_view_asset(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    if member is None:
        return False
    # Reviewers only see what was sent to them or already decided.
    if user.is_reviewer:
        return asset.status in REVIEWER_VISIBLE_STATUSES
    return True


def can_update_asset(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    if user.is_pm:
        return member is not None
    if user.is_creative:
        return asset.uploaded_by == user.id
    return False


def can_delete_asset(user: User, project: Project, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    return user.is_pm and _is_owner(user, project, member)


def can_upload_version(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    if user.is_admin or user.is_pm:
        return can_view_asset(user, asset, member)
    if user.is_creative:
        return asset.uploaded_by == user.id
    return False


def can_approve(user: User, member: ProjectMember | None) -> bool:
    if not user.can_approve:
        return False
    return user.is_admin or member is not None


def can_send_to_client(user: User, member: ProjectMember | None) -> bool:
    return can_approve(user, member)


def can_lock(user: User, member: ProjectMember | None) -> bool:
    if user.is_admin:
        return True
    return user.is_pm and member is not None


def can_comment(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    return can_view_asset(user, asset, member)


def can_download(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    return can_view_asset(user, asset, member)


# Comments

def can_update_comment(user: User, comment: Comment) -> bool:
    return comment.user_id == user.id


def can_delete_comment(user: User, comment: Comment, member: ProjectMember | None) -> bool:
    if user.is_admin or comment.user_id == user.id:
        return True
    return user.is_pm and member is not None


def can_resolve_comment(user: User, asset: Asset, member: ProjectMember | None) -> bool:
    if user.is_creative:
        return asset.uploaded_by == user.id
    return member is not None or user.is_admin


def can_manage_comment_images(user: User, comment: Comment) -> bool:
    return user.is_admin or comment.user_id == user.id
