from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hrflow import schemas
from hrflow.database import get_db
from hrflow.deps import Principal, require_admin
from hrflow.stages import templates

router = APIRouter(tags=["document-templates"])


@router.get("/admin/documents/templates", response_model=list[schemas.DocumentTemplateOut])
def list_templates(db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return templates.list_templates(db)


@router.post("/admin/documents/templates", response_model=schemas.DocumentTemplateOut, status_code=201)
def create_template(
    data: schemas.DocumentTemplateCreate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return templates.create_template(db, data, actor=admin.label)


@router.get("/admin/documents/templates/{template_id}", response_model=schemas.DocumentTemplateOut)
def get_template(template_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    return templates.get_template(db, template_id)


@router.put("/admin/documents/templates/{template_id}", response_model=schemas.DocumentTemplateOut)
def update_template(
    template_id: int,
    data: schemas.DocumentTemplateUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return templates.update_template(db, template_id, data)


@router.delete("/admin/documents/templates/{template_id}", status_code=204)
def delete_template(template_id: int, db: Session = Depends(get_db), admin: Principal = Depends(require_admin)):
    templates.delete_template(db, template_id)
