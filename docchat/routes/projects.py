"""
Project management API routes.
"""
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from ..db import SessionLocal
from ..dependencies import get_current_user
from ..errors import ConflictError, NotFoundError
from ..models import User
from ..schemas import ProjectCreate, ProjectUpdate
from ..services import project_service

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("")
def list_projects(user: User = Depends(get_current_user)):
    """The user's projects, default first, then newest."""
    return {"projects": project_service.list_projects(user.id)}


@router.post("", status_code=201)
def create_project(payload: ProjectCreate, user: User = Depends(get_current_user)):
    return project_service.create_project(user.id, payload.name, payload.description)


@router.post("/ensure-default")
def ensure_default(user: User = Depends(get_current_user)):
    with SessionLocal() as db, db.begin():
        project, created = project_service.ensure_default_project(db, user.id)
        data = project_service.serialize_project(project)
    return JSONResponse(data, status_code=201 if created else 200)


@router.put("/{project_id}")
def update_project(project_id: str, payload: ProjectUpdate, user: User = Depends(get_current_user)):
    try:
        return project_service.update_project(user.id, project_id, payload.name, payload.description)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")


@router.delete("/{project_id}")
def delete_project(project_id: str, user: User = Depends(get_current_user)):
    """Delete a project; its documents move to the default project."""
    try:
        project_service.delete_project(user.id, project_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
    except ConflictError:
        raise HTTPException(status_code=400, detail="Cannot delete the default project")
    return {"success": True}
