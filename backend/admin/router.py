# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261017v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – account lifecycle, domain assignments, the session
monitor and the audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid JWT but belongs to a ``user`` role (or a blocked admin)
receives 403 before any business logic runs.

Lifecycle rules
---------------
* Admin accounts never expire; promoting an account clears its expiration
  and its domain assignments (only regular users hold assignments).
* Blocking only flags the account.  Its login and session stay alive and
  the resource guards deny it.  Expiry is what signs a user out.
* An admin cannot demote, block or delete their own account.
"""

import io
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side

from database import get_db
from core.access import expiration_info
from core.clock import add_months, as_utc, now_utc
from core.config import settings
from core.logger import logger
from core.security import get_client_ip, hash_password, require_admin
from models.assignment import Assignment
from models.audit_log import AuditLog
from models.domain import Domain
from models.profile import ROLES, Profile
from models.user import User
from models.user_session import UserSession
from admin.schemas import (
    ActiveUserListResponse,
    ActiveUserRow,
    AssignDomainRequest,
    AssignmentListResponse,
    AssignmentRow,
    AuditLogListResponse,
    AuditLogRow,
    CreateUserRequest,
    ResetPasswordRequest,
    UpdateUserRequest,
    UserListResponse,
    UserRow,
)

router = APIRouter(prefix="/admin", tags=["admin"])

_MONITOR_WINDOW = timedelta(hours=24)


def compute_expiration(duration, role: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Translate an admin-selected duration into ``expires_at``.

    ``"trial"`` adds ``settings.trial_hours``; an integer adds that many
    calendar months; ``"never"``/None and every admin account get no
    expiration.
    """
    if role == "admin" or duration in (None, "never"):
        return None
    now = now or now_utc()
    if duration == "trial":
        return now + timedelta(hours=settings.trial_hours)
    return add_months(now, int(duration))


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid role. Must be 'admin' or 'user'",
        )


def _get_profile_or_404(user_id: int, db: Session) -> Profile:
    profile = db.query(Profile).filter(Profile.id == user_id).first()
    if not profile:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return profile


def _user_row(profile: Profile, now: Optional[datetime] = None) -> UserRow:
    info = expiration_info(profile, now)
    return UserRow(
        id=profile.id,
        email=profile.email,
        role=profile.role,
        is_blocked=profile.is_blocked,
        expires_at=profile.expires_at,
        last_login=profile.last_login,
        created_at=profile.created_at,
        expiration_status=info.status if info else None,
        expiration_text=info.time_text if info else None,
    )


def _audit(db: Session, admin: Profile, request: Request, action: str,
           target_user_id: Optional[int] = None, detail: Optional[str] = None) -> None:
    db.add(AuditLog(
        admin_id=admin.id,
        target_user_id=target_user_id,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))


# ---------------------------------------------------------------------------
# POST /admin/users  – create a new account
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserRow, status_code=status.HTTP_201_CREATED)
def create_user(
    body: CreateUserRequest,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Create the credential row and its profile.  The new user must change
    the password on first login.
    """
    _check_role(body.role)

    if db.query(User).filter(User.email == body.email).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already exists",
        )

    user = User(
        email=body.email,
        password_hash=hash_password(body.password),
        force_password_change=True,
    )
    db.add(user)
    db.flush()  # get user.id before commit

    expires_at = compute_expiration(body.duration, body.role)
    profile = Profile(
        id=user.id,
        email=body.email,
        role=body.role,
        is_blocked=False,
        expires_at=expires_at,
    )
    db.add(profile)
    _audit(db, admin, request, "create_user", user.id,
           f"role={body.role} expires_at={expires_at.isoformat() if expires_at else 'never'}")
    db.commit()
    db.refresh(profile)
    logger.info("user created | user_id=%s role=%s admin_id=%s", user.id, body.role, admin.id)
    return _user_row(profile)


# ---------------------------------------------------------------------------
# GET /admin/users  – list all accounts
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
def list_users(
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every profile, newest first, with its expiration status."""
    now = now_utc()
    profiles = db.query(Profile).order_by(Profile.created_at.desc(), Profile.id.desc()).all()
    return UserListResponse(users=[_user_row(p, now) for p in profiles])


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}  – change role and/or expiration
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}", response_model=UserRow)
def update_user(
    user_id: int,
    body: UpdateUserRequest,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    profile = _get_profile_or_404(user_id, db)
    changes = []

    if body.role is not None and body.role != profile.role:
        _check_role(body.role)
        if user_id == admin.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot change your own role",
            )
        profile.role = body.role
        changes.append(f"role={body.role}")
        if body.role == "admin":
            profile.expires_at = None
            removed = (
                db.query(Assignment)
                .filter(Assignment.user_id == user_id)
                .delete(synchronize_session=False)
            )
            if removed:
                changes.append(f"assignments_removed={removed}")

    if body.duration is not None:
        profile.expires_at = compute_expiration(body.duration, profile.role)
        changes.append(
            f"expires_at={profile.expires_at.isoformat() if profile.expires_at else 'never'}"
        )

    if changes:
        _audit(db, admin, request, "update_user", user_id, " ".join(changes))
        db.commit()
        db.refresh(profile)
    return _user_row(profile)


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/block  and  /unblock
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/block", response_model=UserRow)
def block_user(
    user_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Set ``is_blocked``.  The account stays signed in; every guarded
    resource answers 403 until it is unblocked.
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot block yourself",
        )
    profile = _get_profile_or_404(user_id, db)
    profile.is_blocked = True
    _audit(db, admin, request, "block_user", user_id)
    db.commit()
    db.refresh(profile)
    return _user_row(profile)


@router.put("/users/{user_id}/unblock", response_model=UserRow)
def unblock_user(
    user_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    profile = _get_profile_or_404(user_id, db)
    profile.is_blocked = False
    _audit(db, admin, request, "unblock_user", user_id)
    db.commit()
    db.refresh(profile)
    return _user_row(profile)


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/reset-password
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/reset-password")
def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Overwrite a user's password.  ``force_password_change`` is set back to
    True so the user must pick a new password on their next login.
    """
    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    target.password_hash = hash_password(body.new_password)
    target.force_password_change = True
    _audit(db, admin, request, "reset_password", user_id)
    db.commit()

    return {"detail": "Password reset successfully"}


# ---------------------------------------------------------------------------
# DELETE /admin/users/{id}
# ---------------------------------------------------------------------------


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Permanently remove the account.  Profile, sessions, assignments and
    revoked tokens go with it (ON DELETE CASCADE).
    """
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot delete yourself",
        )

    target = db.query(User).filter(User.id == user_id).first()
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    email = target.email
    db.delete(target)
    # target_user_id would dangle, so the email goes into the detail instead
    _audit(db, admin, request, "delete_user", None, f"email={email}")
    db.commit()
    logger.info("user deleted | user_id=%s admin_id=%s", user_id, admin.id)

    return {"detail": "User deleted"}


# ---------------------------------------------------------------------------
# /admin/users/{id}/domains  – assignments
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/domains", response_model=AssignmentListResponse)
def list_user_domains(
    user_id: int,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    _get_profile_or_404(user_id, db)
    rows = (
        db.query(Assignment, Domain.masked_name)
        .join(Domain, Assignment.domain_id == Domain.id)
        .filter(Assignment.user_id == user_id)
        .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
        .all()
    )
    return AssignmentListResponse(assignments=[
        AssignmentRow(
            id=a.id,
            user_id=a.user_id,
            domain_id=a.domain_id,
            masked_name=name,
            assigned_at=a.assigned_at,
        )
        for a, name in rows
    ])


@router.post(
    "/users/{user_id}/domains",
    response_model=AssignmentRow,
    status_code=status.HTTP_201_CREATED,
)
def assign_domain(
    user_id: int,
    body: AssignDomainRequest,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    profile = _get_profile_or_404(user_id, db)
    if profile.role == "admin":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Domains can only be assigned to regular users",
        )

    domain = db.query(Domain).filter(Domain.id == body.domain_id).first()
    if not domain:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown domain")

    exists = (
        db.query(Assignment.id)
        .filter(Assignment.user_id == user_id, Assignment.domain_id == domain.id)
        .first()
    )
    if exists:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Domain already assigned")

    assignment = Assignment(user_id=user_id, domain_id=domain.id)
    db.add(assignment)
    _audit(db, admin, request, "assign_domain", user_id, f"domain_id={domain.id}")
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against an identical assignment
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Domain already assigned")
    db.refresh(assignment)

    return AssignmentRow(
        id=assignment.id,
        user_id=user_id,
        domain_id=domain.id,
        masked_name=domain.masked_name,
        assigned_at=assignment.assigned_at,
    )


@router.delete("/users/{user_id}/domains/{domain_id}")
def remove_domain(
    user_id: int,
    domain_id: int,
    request: Request,
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    removed = (
        db.query(Assignment)
        .filter(Assignment.user_id == user_id, Assignment.domain_id == domain_id)
        .delete(synchronize_session=False)
    )
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    _audit(db, admin, request, "remove_domain", user_id, f"domain_id={domain_id}")
    db.commit()
    return {"detail": "Domain removed"}


# ---------------------------------------------------------------------------
# GET /admin/sessions  – who logged in during the last 24 hours
# ---------------------------------------------------------------------------


def activity_status(last_login: datetime, is_blocked: bool, now: datetime) -> str:
    if is_blocked:
        return "blocked"
    idle = now - as_utc(last_login)
    if idle < timedelta(minutes=30):
        return "active"
    if idle < timedelta(hours=2):
        return "recent"
    return "idle"


@router.get("/sessions", response_model=ActiveUserListResponse)
def list_active_users(
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    now = now_utc()
    profiles = (
        db.query(Profile)
        .filter(Profile.last_login.isnot(None), Profile.last_login >= now - _MONITOR_WINDOW)
        .order_by(Profile.last_login.desc())
        .all()
    )
    active = {
        s.user_id: s
        for s in db.query(UserSession).filter(UserSession.is_active.is_(True)).all()
    }

    rows = []
    for p in profiles:
        session = active.get(p.id)
        rows.append(ActiveUserRow(
            id=p.id,
            email=p.email,
            role=p.role,
            is_blocked=p.is_blocked,
            last_login=p.last_login,
            status=activity_status(p.last_login, p.is_blocked, now),
            has_active_session=session is not None,
            last_activity=session.last_activity if session else None,
        ))
    return ActiveUserListResponse(users=rows)


# ---------------------------------------------------------------------------
# GET /admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


def _email_lookup(db: Session, rows) -> dict:
    ids = {r.admin_id for r in rows} | {r.target_user_id for r in rows}
    ids.discard(None)
    if not ids:
        return {}
    return dict(db.query(User.id, User.email).filter(User.id.in_(ids)).all())


@router.get("/audit-logs", response_model=AuditLogListResponse)
def list_audit_logs(
    emails: list[str] | None = Query(None, description="Filter by exact email(s) – repeated param"),
    since: datetime | None = Query(None, description="ISO-8601 start of time window"),
    until: datetime | None = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Return audit log rows newest-first.

    * ``emails`` – match rows whose admin *or* target is one of these.
    * ``since`` / ``until`` – bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    q = db.query(AuditLog)

    if emails:
        ids = [i for (i,) in db.query(User.id).filter(User.email.in_(emails)).all()]
        q = q.filter(AuditLog.admin_id.in_(ids) | AuditLog.target_user_id.in_(ids))
    if since:
        q = q.filter(AuditLog.created_at >= since)
    if until:
        q = q.filter(AuditLog.created_at <= until)

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    lookup = _email_lookup(db, rows)

    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=row.id,
            admin_email=lookup.get(row.admin_id),
            target_email=lookup.get(row.target_user_id),
            action=row.action,
            detail=row.detail,
            request_ip=row.request_ip,
            created_at=row.created_at,
        )
        for row in rows
    ])


# ---------------------------------------------------------------------------
# GET /admin/audit-logs/export  – download the audit trail as Excel
# ---------------------------------------------------------------------------

_AUDIT_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_AUDIT_HEADER_FILL  = PatternFill(start_color="667EEA", end_color="667EEA", fill_type="solid")
_AUDIT_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_AUDIT_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_AUDIT_EXPORT_HEADERS = ["ID", "Time", "Admin", "Account", "Action", "Request IP", "Details"]
_AUDIT_COL_WIDTHS = [8, 20, 28, 28, 20, 16, 50]


@router.get("/audit-logs/export")
def export_audit_logs(
    admin: Profile = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Export the whole audit trail as an .xlsx workbook."""
    rows = db.query(AuditLog).order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).all()
    lookup = _email_lookup(db, rows)

    wb = Workbook()
    ws = wb.active
    ws.title = "Audit Logs"

    ws.append(_AUDIT_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _AUDIT_HEADER_FONT
        cell.fill = _AUDIT_HEADER_FILL
        cell.alignment = _AUDIT_HEADER_ALIGN
        cell.border = _AUDIT_THIN_BORDER

    for row in rows:
        ws.append([
            row.id,
            row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else "",
            lookup.get(row.admin_id, ""),
            lookup.get(row.target_user_id, ""),
            row.action,
            row.request_ip or "",
            row.detail or "",
        ])
        for cell in ws[ws.max_row]:
            cell.border = _AUDIT_THIN_BORDER

    for col_idx, width in enumerate(_AUDIT_COL_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="audit-logs.xlsx"'},
    )
