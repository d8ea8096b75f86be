"""
Project management service.
Projects group a user's documents and scope retrieval for bound conversations.
Every user has exactly one default project, created lazily.
"""
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..db import SessionLocal
from ..errors import ConflictError, NotFoundError
from ..logging_config import logger
from ..models import Document, Project, utcnow

DEFAULT_PROJECT_NAME = "Uncategorized"
DEFAULT_PROJECT_DESCRIPTION = "Default project for documents without a project"


def serialize_project(project: Project) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "is_default": project.is_default,
        "created_at": project.created_at.isoformat(),
        "updated_at": project.updated_at.isoformat(),
    }


def get_owned_project(db, user_id: str, project_id: str) -> Project:
    project = db.get(Project, project_id)
    if project is None or project.user_id != user_id:
        raise NotFoundError("Project not found")
    return project


def _find_default(db, user_id: str) -> Optional[Project]:
    return db.execute(
        select(Project).where(Project.user_id == user_id, Project.is_default.is_(True))
    ).scalars().first()


def ensure_default_project(db, user_id: str) -> Tuple[Project, bool]:
    """
    Return the user's default project inside an open transaction, creating it
    (and adopting project-less documents) if missing.

    Returns:
        (project, created)
    """
    project = _find_default(db, user_id)
    if project is not None:
        return project, False

    try:
        with db.begin_nested():
            project = Project(
                user_id=user_id,
                name=DEFAULT_PROJECT_NAME,
                description=DEFAULT_PROJECT_DESCRIPTION,
                is_default=True,
            )
            db.add(project)
            db.flush()
    except IntegrityError:
        # another request created it between the check and the insert
        logger.info("Default project created concurrently", user_id=user_id)
        return _find_default(db, user_id), False

    db.execute(
        update(Document)
        .where(Document.user_id == user_id, Document.project_id.is_(None))
        .values(project_id=project.id, updated_at=utcnow())
    )
    logger.info("Created default project", user_id=user_id, project_id=project.id)
    return project, True


def list_projects(user_id: str) -> List[dict]:
    with SessionLocal() as db:
        rows = db.execute(
            select(Project)
            .where(Project.user_id == user_id)
            .order_by(Project.is_default.desc(), Project.created_at.desc())
        ).scalars().all()
    return [serialize_project(p) for p in rows]


def create_project(user_id: str, name: str, description: Optional[str] = None) -> dict:
    with SessionLocal() as db, db.begin():
        project = Project(
            user_id=user_id,
            name=name.strip(),
            description=(description or "").strip() or None,
            is_default=False,
        )
        db.add(project)
        db.flush()
        data = serialize_project(project)
    logger.info("Created project", user_id=user_id, project_id=data["id"])
    return data


def update_project(user_id: str, project_id: str, name: Optional[str] = None,
                   description: Optional[str] = None) -> dict:
    with SessionLocal() as db, db.begin():
        project = get_owned_project(db, user_id, project_id)
        if name is not None:
            project.name = name.strip()
        if description is not None:
            project.description = description.strip() or None
        project.updated_at = utcnow()
        db.flush()
        return serialize_project(project)


def delete_project(user_id: str, project_id: str) -> None:
    """
    Delete a project, moving its documents to the default project.

    Raises:
        NotFoundError: unknown project or owned by someone else
        ConflictError: the default project itself
    """
    with SessionLocal() as db, db.begin():
        project = get_owned_project(db, user_id, project_id)
        if project.is_default:
            raise ConflictError("Cannot delete the default project")

        default, _ = ensure_default_project(db, user_id)
        db.execute(
            update(Document)
            .where(Document.project_id == project_id)
            .values(project_id=default.id, updated_at=utcnow())
        )
        db.delete(project)

    logger.info("Deleted project", user_id=user_id, project_id=project_id)
