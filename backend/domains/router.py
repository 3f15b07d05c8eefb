# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Domain endpoints.

* ``GET /domains`` – the caller's assigned domains.  Display name and image
  only; the hidden target never leaves the server through this router
  except to admins.
* ``/admin/domains`` – admin CRUD, including the domain image.

Hidden targets are stored AES-GCM encrypted and decrypted only for the
admin listing and by the redirect relay after its access check.
"""

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from core.images import ImageStore, get_image_store
from core.logger import logger
from core.security import decrypt_value, encrypt_value, get_client_ip, require_admin, require_unblocked
from models.assignment import Assignment
from models.audit_log import AuditLog
from models.domain import Domain
from models.profile import Profile
from domains.schemas import (
    AssignedDomain,
    AssignedDomainListResponse,
    DomainAdminListResponse,
    DomainAdminRow,
    DomainCreate,
    DomainPublic,
    DomainUpdate,
)

router = APIRouter(prefix="/domains", tags=["domains"])
admin_router = APIRouter(prefix="/admin/domains", tags=["admin"])


def relay_path(domain_id: int) -> str:
    return f"/redirect?domain={domain_id}"


def get_domain_or_404(domain_id: int, db: Session) -> Domain:
    domain = db.query(Domain).filter(Domain.id == domain_id).first()
    if not domain:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Domain not found")
    return domain


def _admin_row(domain: Domain, assigned_users: int = 0) -> DomainAdminRow:
    return DomainAdminRow(
        id=domain.id,
        target_url=decrypt_value(domain.encrypted_target, domain.iv),
        masked_name=domain.masked_name,
        image_url=domain.image_url,
        image_alt=domain.image_alt,
        created_by=domain.created_by,
        created_at=domain.created_at,
        assigned_users=assigned_users,
    )


def _audit(db: Session, admin: Profile, request: Request, action: str, detail: str) -> None:
    db.add(AuditLog(
        admin_id=admin.id,
        target_user_id=None,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))


# ---------------------------------------------------------------------------
# GET /domains  – the caller's assignments, newest first
# ---------------------------------------------------------------------------


@router.get("", response_model=AssignedDomainListResponse)
def list_my_domains(
    profile: Profile = Depends(require_unblocked),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(Assignment, Domain)
        .join(Domain, Assignment.domain_id == Domain.id)
        .filter(Assignment.user_id == profile.id)
        .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
        .all()
    )
    return AssignedDomainListResponse(domains=[
        AssignedDomain(
            assignment_id=assignment.id,
            assigned_at=assignment.assigned_at,
            domain=DomainPublic.model_validate(domain),
            access_path=relay_path(domain.id),
        )
        for assignment, domain in rows
    ])


# ---------------------------------------------------------------------------
# POST /admin/domains  – register a domain
# ---------------------------------------------------------------------------


@admin_router.post("", response_model=DomainAdminRow, status_code=status.HTTP_201_CREATED)
def create_domain(
    body: DomainCreate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    encrypted, iv = encrypt_value(body.target_url)
    domain = Domain(
        encrypted_target=encrypted,
        iv=iv,
        masked_name=body.masked_name,
        image_alt=body.image_alt,
        created_by=admin.id,
    )
    db.add(domain)
    db.flush()
    _audit(db, admin, request, "create_domain", f"domain_id={domain.id} name={body.masked_name}")
    db.commit()
    db.refresh(domain)
    logger.info("domain created | domain_id=%s admin_id=%s", domain.id, admin.id)
    return _admin_row(domain)


# ---------------------------------------------------------------------------
# GET /admin/domains  – every domain with its decrypted target
# ---------------------------------------------------------------------------


@admin_router.get("", response_model=DomainAdminListResponse)
def list_domains(
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    counts = dict(
        db.query(Assignment.domain_id, func.count(Assignment.id))
        .group_by(Assignment.domain_id)
        .all()
    )
    domains = db.query(Domain).order_by(Domain.created_at.desc(), Domain.id.desc()).all()
    return DomainAdminListResponse(
        domains=[_admin_row(d, counts.get(d.id, 0)) for d in domains]
    )


# ---------------------------------------------------------------------------
# PUT /admin/domains/{id}  – rename, retarget, or change the image alt text
# ---------------------------------------------------------------------------


@admin_router.put("/{domain_id}", response_model=DomainAdminRow)
def update_domain(
    domain_id: int,
    body: DomainUpdate,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    domain = get_domain_or_404(domain_id, db)

    changed = []
    if body.masked_name is not None:
        domain.masked_name = body.masked_name
        changed.append("masked_name")
    if body.target_url is not None:
        domain.encrypted_target, domain.iv = encrypt_value(body.target_url)
        changed.append("target_url")
    if body.image_alt is not None:
        domain.image_alt = body.image_alt or None
        changed.append("image_alt")

    if changed:
        _audit(db, admin, request, "update_domain", f"domain_id={domain_id} fields={','.join(changed)}")
        db.commit()
        db.refresh(domain)
    return _admin_row(domain)


# ---------------------------------------------------------------------------
# DELETE /admin/domains/{id}
# ---------------------------------------------------------------------------


@admin_router.delete("/{domain_id}")
def delete_domain(
    domain_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    """Delete the domain; its assignments go with it (ON DELETE CASCADE)."""
    domain = get_domain_or_404(domain_id, db)
    image_url = domain.image_url

    db.query(Assignment).filter(Assignment.domain_id == domain_id).delete(synchronize_session=False)
    db.delete(domain)
    _audit(db, admin, request, "delete_domain", f"domain_id={domain_id} name={domain.masked_name}")
    db.commit()

    if image_url:
        images.delete(image_url)
    return {"detail": "Domain deleted"}


# ---------------------------------------------------------------------------
# POST /admin/domains/{id}/image  – upload or replace the domain image
# ---------------------------------------------------------------------------


@admin_router.post("/{domain_id}/image", response_model=DomainAdminRow)
async def upload_domain_image(
    domain_id: int,
    request: Request,
    file: UploadFile = File(...),
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    """
    Store the uploaded image and point the domain at it.  The previous
    image, if any, is deleted once the new one is saved.
    """
    domain = get_domain_or_404(domain_id, db)

    data = await file.read()
    new_url = images.save(domain_id, file.filename, data)

    old_url = domain.image_url
    domain.image_url = new_url
    _audit(db, admin, request, "update_domain_image", f"domain_id={domain_id}")
    db.commit()
    db.refresh(domain)

    if old_url:
        images.delete(old_url)
    return _admin_row(domain)


# ---------------------------------------------------------------------------
# DELETE /admin/domains/{id}/image
# ---------------------------------------------------------------------------


@admin_router.delete("/{domain_id}/image", response_model=DomainAdminRow)
def remove_domain_image(
    domain_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
    images: ImageStore = Depends(get_image_store),
):
    domain = get_domain_or_404(domain_id, db)
    if domain.image_url:
        images.delete(domain.image_url)
        domain.image_url = None
        domain.image_alt = None
        _audit(db, admin, request, "remove_domain_image", f"domain_id={domain_id}")
        db.commit()
        db.refresh(domain)
    return _admin_row(domain)
