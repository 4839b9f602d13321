from __future__ import annotations

import pytest

from proofboard import policies
from proofboard.models.asset import Asset, AssetStatus
from proofboard.models.comment import Comment
from proofboard.models.project import MemberRole, Project, ProjectMember
from proofboard.models.user import User, UserRole


def user(role: UserRole, id: int) -> User:
    return User(id=id, email=f"{id}@x.io", username=f"u{id}", role=role, hashed_password="-")


ADMIN = user(UserRole.ADMIN, 1)
PM = user(UserRole.PM, 2)
CREATIVE = user(UserRole.CREATIVE, 3)
REVIEWER = user(UserRole.REVIEWER, 4)
PROJECT = Project(id=10, name="P", created_by=PM.id)


def member(u: User, role: MemberRole = MemberRole.MEMBER) -> ProjectMember:
    return ProjectMember(project_id=PROJECT.id, user_id=u.id, role_in_project=role)


def asset(status: AssetStatus, uploaded_by: int = CREATIVE.id) -> Asset:
    return Asset(id=5, project_id=PROJECT.id, uploaded_by=uploaded_by, title="A", type="image", status=status)


@pytest.mark.parametrize(
    "status, visible",
    [
        (AssetStatus.PENDING_REVIEW, False),
        (AssetStatus.IN_REVIEW, False),
        (AssetStatus.CLIENT_REVIEW, True),
        (AssetStatus.APPROVED, True),
        (AssetStatus.REVISION_REQUESTED, True),
    ],
)
def test_reviewer_visibility(status, visible):
    assert policies.can_view_asset(REVIEWER, asset(status), member(REVIEWER)) is visible
    assert policies.can_view_asset(CREATIVE, asset(status), member(CREATIVE)) is True


def test_non_members_see_nothing_but_admins_see_all():
    pending = asset(AssetStatus.PENDING_REVIEW)
    assert policies.can_view_asset(CREATIVE, pending, None) is False
    assert policies.can_view_asset(ADMIN, pending, None) is True


def test_approval_rights():
    assert policies.can_approve(PM, member(PM))
    assert not policies.can_approve(PM, None)
    assert policies.can_approve(ADMIN, None)
    assert not policies.can_approve(CREATIVE, member(CREATIVE))
    assert not policies.can_approve(REVIEWER, member(REVIEWER))
    assert not policies.can_lock(CREATIVE, member(CREATIVE))


def test_version_uploads():
    own = asset(AssetStatus.IN_REVIEW)
    other = asset(AssetStatus.IN_REVIEW, uploaded_by=99)
    assert policies.can_upload_version(CREATIVE, own, member(CREATIVE))
    assert not policies.can_upload_version(CREATIVE, other, member(CREATIVE))
    assert policies.can_upload_version(PM, other, member(PM))
    assert not policies.can_upload_version(REVIEWER, own, member(REVIEWER))


def test_project_ownership():
    other_pm = user(UserRole.PM, 6)
    assert policies.can_update_project(PM, PROJECT, member(PM, MemberRole.OWNER))
    assert not policies.can_update_project(other_pm, PROJECT, member(other_pm))
    assert policies.can_update_project(other_pm, PROJECT, member(other_pm, MemberRole.OWNER))
    assert not policies.can_delete_project(PM)
    assert policies.can_delete_asset(PM, PROJECT, member(PM))


def test_comment_rights():
    comment = Comment(id=1, asset_id=5, asset_version=1, user_id=REVIEWER.id, content="c")
    assert policies.can_update_comment(REVIEWER, comment)
    assert not policies.can_update_comment(PM, comment)
    assert policies.can_delete_comment(PM, comment, member(PM))
    assert not policies.can_delete_comment(CREATIVE, comment, member(CREATIVE))

    assert policies.can_resolve_comment(CREATIVE, asset(AssetStatus.IN_REVIEW), member(CREATIVE))
    assert not policies.can_resolve_comment(CREATIVE, asset(AssetStatus.IN_REVIEW, 99), member(CREATIVE))
    assert policies.can_resolve_comment(REVIEWER, asset(AssetStatus.CLIENT_REVIEW), member(REVIEWER))


def test_user_administration():
    assert policies.can_list_users(ADMIN)
    assert policies.can_list_users(PM)
    assert not policies.can_list_users(CREATIVE)
    assert policies.can_manage_users(ADMIN)
    assert not policies.can_manage_users(PM)
