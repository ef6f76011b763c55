from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_module_service
from ..errors import NotFoundError
from ..services.modules import ModuleService

router = APIRouter(tags=["modules"])


class ModuleRequest(BaseModel):
    # Emptiness is checked by the Module schema so the error names the field.
    title: str | None = None


@router.post("/modules", status_code=201)
def create_module(body: ModuleRequest, svc: ModuleService = Depends(get_module_service)):
    module = svc.create(title=body.title)
    return {"data": module.to_document(), "message": "module created successfully"}


@router.get("/modules")
def list_modules(title: str | None = None, svc: ModuleService = Depends(get_module_service)):
    return {"data": [m.to_document() for m in svc.search(title=title)]}


@router.get("/modules/{moduleId}")
def get_module(moduleId: str, svc: ModuleService = Depends(get_module_service)):
    module = svc.get(moduleId)
    if module is None:
        raise NotFoundError(message="module not found", collection="Module", record_id=moduleId)
    return {"data": module.to_document()}


@router.put("/modules/{moduleId}")
def update_module(moduleId: str, body: ModuleRequest, svc: ModuleService = Depends(get_module_service)):
    return {"data": svc.rename(moduleId, title=body.title).to_document()}


@router.delete("/modules/{moduleId}")
def delete_module(moduleId: str, svc: ModuleService = Depends(get_module_service)):
    svc.delete(moduleId)
    return {"message": "Module deleted successfully."}
