"""
Projects API
Each project belongs to one user (`userId`) and embeds its sheets.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from typing import Optional, List, Dict, Any
from datetime import datetime
from bson import ObjectId
from bson.errors import InvalidId

from auth import require_user_id
from database import get_db
from role_helpers import require_admin, require_confirmation

router = APIRouter(prefix="/api/projects", tags=["projects"])

PROJECT_STATUSES = ("active", "archived")


class ProjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    userId: Optional[str] = None  # admin only; defaults to the caller
    sheets: List[Dict[str, Any]] = []


class ProjectUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    sheets: Optional[List[Dict[str, Any]]] = None


def project_helper(project, user_email: Optional[str] = None) -> dict:
    """Convert MongoDB project to dict"""
    sheets = project.get("sheets") or []
    return {
        "id": str(project["_id"]),
        "userId": project.get("userId"),
        "userEmail": user_email,
        "name": project.get("name") or "Untitled Project",
        "description": project.get("description") or "",
        "status": project.get("status") or "active",
        "sheets": sheets,
        "sheetCount": len(sheets),
        "createdAt": project.get("createdAt"),
        "updatedAt": project.get("updatedAt"),
    }


def _object_id(project_id: str) -> ObjectId:
    try:
        return ObjectId(project_id)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid project ID")


@router.get("/mine")
async def list_my_projects(request: Request, db=Depends(get_db)):
    """Projects owned by the token holder, newest first"""
    user_id = require_user_id(request)
    try:
        projects = db.projects.find({"userId": user_id}).sort("createdAt", -1)
        return [project_helper(p) for p in projects]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load projects: {str(e)}")


@router.get("")
async def list_projects(request: Request, user_id: Optional[str] = None, db=Depends(get_db)):
    """All projects across users, joined with the owner's email (admin only)"""
    require_admin(request, db)
    try:
        query = {"userId": user_id} if user_id else {}
        emails = {u["_id"]: u.get("email") for u in db.users.find({}, {"email": 1})}
        projects = db.projects.find(query).sort("createdAt", -1)
        return [project_helper(p, emails.get(p.get("userId"))) for p in projects]
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load projects: {str(e)}")


@router.post("")
async def create_project(body: ProjectCreate, request: Request, db=Depends(get_db)):
    """Create a project for the caller, or for `userId` when the caller is an admin"""
    if body.userId:
        require_admin(request, db)
        owner_id = body.userId
        if not db.users.find_one({"_id": owner_id}):
            raise HTTPException(status_code=404, detail="User not found")
    else:
        owner_id = require_user_id(request)

    try:
        now = datetime.utcnow()
        doc = {
            "userId": owner_id,
            "name": body.name,
            "description": body.description or "",
            "status": "active",
            "sheets": body.sheets,
            "createdAt": now,
            "updatedAt": now,
        }
        result = db.projects.insert_one(doc)
        db.users.update_one({"_id": owner_id}, {"$inc": {"usage.sheetsCreated": len(body.sheets)}})
        doc["_id"] = result.inserted_id
        return {"message": "Project created successfully", "project": project_helper(doc)}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to create project: {str(e)}")


@router.get("/{project_id}")
async def get_project(project_id: str, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    try:
        project = db.projects.find_one({"_id": _object_id(project_id)})
        if not project:
            raise HTTPException(status_code=404, detail="Project not found")
        owner = db.users.find_one({"_id": project.get("userId")}, {"email": 1})
        return project_helper(project, owner.get("email") if owner else None)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.put("/{project_id}")
async def update_project(project_id: str, body: ProjectUpdate, request: Request, db=Depends(get_db)):
    require_admin(request, db)
    update = body.model_dump(exclude_none=True)
    if "status" in update and update["status"] not in PROJECT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status. Must be one of {list(PROJECT_STATUSES)}")

    try:
        oid = _object_id(project_id)
        update["updatedAt"] = datetime.utcnow()
        result = db.projects.update_one({"_id": oid}, {"$set": update})
        if result.matched_count == 0:
            raise HTTPException(status_code=404, detail="Project not found")
        return {"message": "Project updated successfully", "project": project_helper(db.projects.find_one({"_id": oid}))}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to update project: {str(e)}")


@router.delete("/{project_id}")
async def delete_project(project_id: str, request: Request, confirm: bool = False, db=Depends(get_db)):
    require_admin(request, db)
    require_confirmation(confirm, "project")
    try:
        result = db.projects.delete_one({"_id": _object_id(project_id)})
        if result.deleted_count == 0:
            raise HTTPException(status_code=404, detail="Project not found")
        return {"message": "Project deleted successfully"}
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to delete project: {str(e)}")
