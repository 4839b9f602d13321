"""Project management API routes."""
from fastapi import APIRouter, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from proofboard import policies
from proofboard.api.deps import CurrentUser, DbSession, Storage, authorize, get_membership
from proofboard.models.project import MemberRole, Project, ProjectMember
from proofboard.models.user import User
from proofboard.schemas.project import (
    MemberAdd,
    MemberResponse,
    ProjectCreate,
    ProjectListResponse,
    ProjectResponse,
    ProjectUpdate,
)
from proofboard.services.exceptions import NotFoundError

router = APIRouter()


async def load_project(db, project_id: int) -> Project:
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project not found")
    return project


@router.get("", response_model=ProjectListResponse)
async def list_projects(
    current_user: CurrentUser,
    db: DbSession,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """Projects the current user belongs to (all projects for admins)."""
    offset = (page - 1) * page_size

    stmt = select(Project)
    count_stmt = select(func.count(Project.id))
    if not current_user.is_admin:
        member_of = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.id)
        stmt = stmt.where(Project.id.in_(member_of))
        count_stmt = count_stmt.where(Project.id.in_(member_of))

    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(
        stmt.order_by(Project.updated_at.desc(), Project.id.desc()).offset(offset).limit(page_size)
    )

    return ProjectListResponse(
        projects=[ProjectResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_data: ProjectCreate,
    current_user: CurrentUser,
    db: DbSession,
):
    """Create a project; the creator joins it as owner."""
    authorize(policies.can_create_project(current_user), "Only admins and PMs can create projects.")

    project = Project(**project_data.model_dump(), created_by=current_user.id)
    db.add(project)
    await db.flush()
    db.add(ProjectMember(project_id=project.id, user_id=current_user.id, role_in_project=MemberRole.OWNER))
    await db.flush()
    await db.refresh(project)
    return project


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: int, current_user: CurrentUser, db: DbSession):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_view_project(current_user, member))
    return project


@router.patch("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: int,
    project_data: ProjectUpdate,
    current_user: CurrentUser,
    db: DbSession,
):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_update_project(current_user, project, member))

    for field, value in project_data.model_dump(exclude_unset=True).items():
        setattr(project, field, value)
    await db.flush()
    await db.refresh(project)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: int,
    current_user: CurrentUser,
    db: DbSession,
    store: Storage,
):
    """Delete a project with all of its assets and stored files."""
    project = await load_project(db, project_id)
    authorize(policies.can_delete_project(current_user), "Only admins can delete projects.")

    await db.delete(project)
    await db.flush()
    await store.delete_directory(f"assets/{project_id}")


@router.get("/{project_id}/members", response_model=list[MemberResponse])
async def list_members(project_id: int, current_user: CurrentUser, db: DbSession):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_view_project(current_user, member))

    result = await db.execute(
        select(ProjectMember)
        .options(selectinload(ProjectMember.user))
        .where(ProjectMember.project_id == project.id)
        .order_by(ProjectMember.id)
    )
    return result.scalars().all()


@router.post("/{project_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    project_id: int,
    data: MemberAdd,
    current_user: CurrentUser,
    db: DbSession,
):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_manage_members(current_user, project, member))

    user = await db.get(User, data.user_id)
    if user is None:
        raise NotFoundError("User not found")
    if await get_membership(db, project.id, user.id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already a member")

    new_member = ProjectMember(project_id=project.id, user_id=user.id, role_in_project=data.role_in_project)
    db.add(new_member)
    await db.flush()

    result = await db.execute(
        select(ProjectMember)
        .options(selectinload(ProjectMember.user))
        .where(ProjectMember.id == new_member.id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


@router.delete("/{project_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: int,
    user_id: int,
    current_user: CurrentUser,
    db: DbSession,
):
    project = await load_project(db, project_id)
    member = await get_membership(db, project.id, current_user.id)
    authorize(policies.can_manage_members(current_user, project, member))

    target = await get_membership(db, project.id, user_id)
    if target is None:
        raise NotFoundError("Member not found")
    await db.delete(target)
