import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.security import get_current_user, require_student, require_teacher
from ..database import get_db
from ..dependencies import get_storage
from ..storage import BucketStorage, remove_material_file, upload_material

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/materials",
    tags=["materials"]
)


def _get_material_or_404(db: Session, material_id: int) -> models.Material:
    material, error = crud.get_material(db, material_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    if material is None:
        raise HTTPException(status_code=404, detail="Material not found")
    return material


def _owned_material(db: Session, material_id: int, teacher: models.Profile) -> models.Material:
    material = _get_material_or_404(db, material_id)
    if material.teacher_id != teacher.id:
        raise HTTPException(status_code=403, detail="You can only change your own materials")
    return material


@router.get("", response_model=List[schemas.Material])
def read_materials(user: models.Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    materials, error = crud.get_materials(db)
    if error:
        raise HTTPException(status_code=500, detail="Failed to load study materials")
    return materials


@router.get("/{material_id}", response_model=schemas.Material)
def read_material(material_id: int, user: models.Profile = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    return _get_material_or_404(db, material_id)


@router.post("", response_model=schemas.Material, status_code=201)
def create_material(
    title: str = Form(...),
    description: Optional[str] = Form(None),
    file: UploadFile = File(...),
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
    storage: BucketStorage = Depends(get_storage),
):
    if not title.strip():
        raise HTTPException(status_code=400, detail="Please enter a title")
    if not file.filename:
        raise HTTPException(status_code=400, detail="Please select a file to upload")

    report = upload_material(
        db, storage, teacher.id,
        title=title.strip(),
        filename=file.filename,
        fileobj=file.file,
        content_type=file.content_type,
        description=description,
    )
    if not report.ok:
        raise HTTPException(status_code=500, detail=report.as_dict())

    logger.info("Material %s uploaded by %s", report.result.id, teacher.email)
    return report.result


@router.put("/{material_id}", response_model=schemas.Material)
def update_material(
    material_id: int,
    payload: schemas.MaterialUpdate,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    _owned_material(db, material_id, teacher)
    fields = payload.model_dump(exclude_unset=True)
    if "title" in fields and not (fields["title"] or "").strip():
        raise HTTPException(status_code=400, detail="Please enter a title")

    material, error = crud.update_material(db, material_id, **fields)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to update material: {error}")
    return material


@router.delete("/{material_id}")
def delete_material(
    material_id: int,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
    storage: BucketStorage = Depends(get_storage),
):
    material = _owned_material(db, material_id, teacher)
    file_url = material.file_url

    _, error = crud.delete_material(db, material_id)
    if error:
        raise HTTPException(status_code=500, detail=f"Failed to delete material: {error}")

    remove_material_file(storage, file_url)
    logger.info("Material %s deleted by %s", material_id, teacher.email)
    return {"message": "Material deleted", "id": material_id}


@router.post("/{material_id}/view", response_model=schemas.MaterialView)
def record_view(
    material_id: int,
    student: models.Profile = Depends(require_student),
    db: Session = Depends(get_db),
):
    material = _get_material_or_404(db, material_id)
    if not material.file_url:
        raise HTTPException(status_code=400, detail="This material has no file attached")

    view, error = crud.record_material_view(db, material_id, student.id)
    if error:
        raise HTTPException(status_code=500, detail="Failed to open material")
    return view


@router.get("/{material_id}/views", response_model=List[schemas.MaterialView])
def read_views(
    material_id: int,
    teacher: models.Profile = Depends(require_teacher),
    db: Session = Depends(get_db),
):
    _get_material_or_404(db, material_id)
    views, error = crud.get_material_views(db, material_id)
    if error:
        raise HTTPException(status_code=500, detail=error)
    return views
