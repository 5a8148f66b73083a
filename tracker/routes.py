"""
HTTP routes for the tracker API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from tracker.db import DbClient
from tracker.dependencies import get_db_client, get_membership_manager
from tracker.errors import (
    InvalidCredentials,
    MembershipWriteError,
    NotFound,
    ProjectNotFound,
    StorageError,
)
from tracker.membership import MembershipManager
from tracker.schemas import (
    AddMemberRequest,
    ChangesResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProjectPayload,
    ProjectResponse,
    ProjectsResponse,
    RevenueUpdateRequest,
    SignupRequest,
    SingleProjectResponse,
    UserResponse,
    UsersResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()

INTERNAL_ERROR = "Internal Server Error"


def _parse_project_id(value: str) -> Optional[int]:
    """Ids that are not integers match no project row."""
    try:
        return int(value)
    except ValueError:
        return None


@router.get("/usuarios", response_model=UsersResponse)
def list_users(db: DbClient = Depends(get_db_client)):
    try:
        users = db.list_users()
    except StorageError as exc:
        logger.error("Error fetching usuarios: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return {"usuarios": [user.as_dict() for user in users]}


@router.get("/proyectos", response_model=ProjectsResponse)
def list_projects(db: DbClient = Depends(get_db_client)):
    try:
        projects = db.list_projects()
    except StorageError as exc:
        logger.error("Error fetching proyectos: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return {"proyectos": [project.as_dict() for project in projects]}


@router.get("/proyectos/user/{user_id}", response_model=ProjectsResponse)
def list_member_projects(
    user_id: str,
    membership: MembershipManager = Depends(get_membership_manager),
):
    """Projects whose member list contains exactly ``user_id``."""
    try:
        projects = membership.find_projects_for_member(user_id)
    except StorageError as exc:
        logger.error("Error fetching user projects: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return {"proyectos": [project.as_dict() for project in projects]}


@router.get("/proyectos/{project_id}", response_model=SingleProjectResponse)
def get_project(project_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = _parse_project_id(project_id)
    try:
        if parsed_id is None:
            raise ProjectNotFound()
        project = db.get_project(parsed_id)
    except ProjectNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except StorageError as exc:
        logger.error("Error fetching project: %s", exc)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
    return {"proyecto": project.as_dict()}


@router.put("/proyectos/update/{project_id}", response_model=ChangesResponse)
def update_project_revenue(
    project_id: str,
    payload: RevenueUpdateRequest,
    db: DbClient = Depends(get_db_client),
):
    """Overwrite only the estimated revenue of a project."""
    parsed_id = _parse_project_id(project_id)
    if parsed_id is None:
        return ChangesResponse(changes=0)
    try:
        changes = db.update_project_revenue(parsed_id, payload.estimated_revenue)
    except StorageError as exc:
        logger.error("Error updating project: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return ChangesResponse(changes=changes)


@router.post("/create", response_model=UserResponse)
def create_user(payload: SignupRequest, db: DbClient = Depends(get_db_client)):
    try:
        user = db.create_user(payload.name, payload.email, payload.password_secret)
    except StorageError as exc:
        logger.error("Error inserting user: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return user.as_dict()


@router.post("/login", response_model=LoginResponse)
def login(payload: LoginRequest, db: DbClient = Depends(get_db_client)):
    # Secrets are compared verbatim; nothing here hashes them.
    try:
        user = db.authenticate(payload.email, payload.password_secret)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        logger.error("Error querying user: %s", exc)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
    return {"message": "Login successful", "user": user.as_dict()}


@router.post("/proyectos", response_model=ProjectResponse)
def create_project(payload: ProjectPayload, db: DbClient = Depends(get_db_client)):
    try:
        project = db.create_project(payload.to_fields())
    except StorageError as exc:
        logger.error("Error inserting proyecto: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return project.as_dict()


@router.post("/proyectos/addUser", response_model=MessageResponse)
def add_project_member(
    payload: AddMemberRequest,
    membership: MembershipManager = Depends(get_membership_manager),
):
    try:
        membership.add_member(payload.project_id, payload.email)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except MembershipWriteError as exc:
        logger.error("Error updating project: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    except StorageError as exc:
        logger.error("Error querying user or project: %s", exc)
        raise HTTPException(status_code=500, detail=INTERNAL_ERROR)
    return MessageResponse(message="User added to project successfully")


@router.put("/proyectos/{project_id}", response_model=ChangesResponse)
def update_project(
    project_id: str,
    payload: ProjectPayload,
    db: DbClient = Depends(get_db_client),
):
    """Replace every field of a project, member list included."""
    parsed_id = _parse_project_id(project_id)
    if parsed_id is None:
        return ChangesResponse(changes=0)
    try:
        changes = db.update_project(parsed_id, payload.to_fields())
    except StorageError as exc:
        logger.error("Error updating proyecto: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return ChangesResponse(changes=changes)


@router.delete("/proyectos/{project_id}", response_model=ChangesResponse)
def delete_project(project_id: str, db: DbClient = Depends(get_db_client)):
    parsed_id = _parse_project_id(project_id)
    if parsed_id is None:
        return ChangesResponse(changes=0)
    try:
        changes = db.delete_project(parsed_id)
    except StorageError as exc:
        logger.error("Error deleting proyecto: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc))
    return ChangesResponse(changes=changes)
