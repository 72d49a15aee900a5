from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.api.deps import DBSession
from app.api.auth_deps import get_current_user
from app.infra.models import ReceiptTemplateORM
from app.schemas.receipts import ReceiptTemplateCreate, ReceiptTemplateOut
from app.services.errors import ValidationError
from app.services.receipts import ReceiptTemplateConfig, RECEIPT_SCHEMA_VERSION, load_template_config

router = APIRouter(dependencies=[Depends(get_current_user)])


def _out(row: ReceiptTemplateORM) -> ReceiptTemplateOut:
    try:
        config = load_template_config(row.config_json)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return ReceiptTemplateOut(
        id=row.id,
        name=row.name,
        is_default=row.is_default,
        schema_version=row.schema_version,
        config=config,
        created_at=row.created_at,
    )


@router.post("", response_model=ReceiptTemplateOut, status_code=201)
def create_template(
    payload: ReceiptTemplateCreate,
    db: Session = DBSession,
    current_user=Depends(get_current_user),
):
    if payload.config.schema_version > RECEIPT_SCHEMA_VERSION:
        raise HTTPException(status_code=400, detail="schema_version non supportée.")

    if payload.is_default:
        # un seul modèle par défaut par utilisateur
        db.execute(
            update(ReceiptTemplateORM)
            .where(ReceiptTemplateORM.user_id == current_user.id)
            .values(is_default=False)
        )

    row = ReceiptTemplateORM(
        user_id=current_user.id,
        name=payload.name.strip(),
        is_default=payload.is_default,
        schema_version=payload.config.schema_version,
        config_json=payload.config.model_dump_json(),
    )
    db.add(row)
    db.flush()
    db.refresh(row)
    return _out(row)


@router.get("", response_model=list[ReceiptTemplateOut])
def list_templates(db: Session = DBSession, current_user=Depends(get_current_user)):
    stmt = (
        select(ReceiptTemplateORM)
        .where(ReceiptTemplateORM.user_id == current_user.id)
        .order_by(ReceiptTemplateORM.is_default.desc(), ReceiptTemplateORM.name.asc())
    )
    return [_out(r) for r in db.execute(stmt).scalars().all()]


@router.get("/default", response_model=ReceiptTemplateConfig)
def default_template(db: Session = DBSession, current_user=Depends(get_current_user)):
    row = db.execute(
        select(ReceiptTemplateORM).where(
            ReceiptTemplateORM.user_id == current_user.id,
            ReceiptTemplateORM.is_default.is_(True),
        )
    ).scalars().first()
    if row is None:
        return ReceiptTemplateConfig()
    return _out(row).config
