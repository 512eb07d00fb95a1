from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..auth import get_current_admin, read_limiter, write_limiter
from ..database import get_db
from ..exceptions import NotFoundError

router = APIRouter(prefix="/packages", tags=["Packages"])

CurrentAdmin = Annotated[schemas.Actor, Depends(get_current_admin)]


@router.get("/", response_model=list[schemas.PackageRead])
def read_packages(
        db: Session = Depends(get_db),
        featured: bool | None = None,
        destination: str | None = None,
        rate_limit: None = Depends(read_limiter),
):
    """
    Public catalogue of active packages, featured first.
    """
    return crud.list_packages(db, featured=featured, destination=destination)


@router.get("/{slug}", response_model=schemas.PackageRead)
def read_package(
        slug: str,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(read_limiter),
):
    db_package = crud.get_package_by_slug(db, slug)
    if db_package is None:
        raise NotFoundError("Package not found")
    return db_package


@router.post("/", response_model=schemas.PackageRead, status_code=status.HTTP_201_CREATED)
def create_package(
        package: schemas.PackageCreate,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return crud.create_package(db, actor, package)


@router.put("/{package_id}", response_model=schemas.PackageRead)
def update_package(
        package_id: int,
        changes: schemas.PackageUpdate,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return crud.update_package(db, actor, package_id, changes)


@router.delete("/{package_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_package(
        package_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    crud.delete_package(db, actor, package_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{package_id}/toggle-featured", response_model=schemas.PackageRead)
def toggle_featured(
        package_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return crud.toggle_package_featured(db, actor, package_id)


@router.patch("/{package_id}/toggle-active", response_model=schemas.PackageRead)
def toggle_active(
        package_id: int,
        actor: CurrentAdmin,
        db: Session = Depends(get_db),
        rate_limit: None = Depends(write_limiter),
):
    return crud.toggle_package_active(db, actor, package_id)
