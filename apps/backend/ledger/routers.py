from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from .core.database import get_db
from .core.deps import get_current_user
from . import models
from .schemas import (
    CancellationResult,
    ExpansionResult,
    RenewalRunOut,
    TransactionCreate,
    TransactionOut,
    TransactionUpdate,
    TransactionWriteResult,
)
from .services import RenewalService, TransactionService

router = APIRouter()


@router.get("/transactions", response_model=list[TransactionOut])
def list_transactions(
    response: Response,
    parent_transaction_id: Optional[str] = Query(None, description="Only occurrences of this template"),
    recurring_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    items = TransactionService(db).list_for_user(current_user.id)
    if parent_transaction_id is not None:
        items = [t for t in items if t.parent_transaction_id == parent_transaction_id]
    if recurring_only:
        items = [t for t in items if t.is_recurring]
    response.headers["X-Total-Count"] = str(len(items))
    return items


@router.post("/transactions", response_model=TransactionWriteResult, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    try:
        return TransactionService(db).create(current_user.id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/transactions/{txn_id}", response_model=TransactionOut)
def get_transaction(
    txn_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    record = TransactionService(db).get(current_user.id, txn_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return record


@router.patch("/transactions/{txn_id}", response_model=TransactionWriteResult)
def update_transaction(
    txn_id: str,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    # A paid fixed occurrence cascades into the next one
    try:
        result = TransactionService(db).update(current_user.id, txn_id, payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if result is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return result


@router.delete("/transactions/{txn_id}", status_code=204)
def delete_transaction(
    txn_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not TransactionService(db).delete(current_user.id, txn_id):
        raise HTTPException(status_code=404, detail="Transaction not found")
    return Response(status_code=204)


@router.post("/recurring/expand", response_model=ExpansionResult)
def expand_recurring_transactions(
    horizon_months: Optional[int] = Query(None, ge=0, le=120, description="Defaults to the general horizon preset"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    horizon, result = TransactionService(db).expand(current_user.id, horizon_months=horizon_months)
    return ExpansionResult(
        horizon=horizon,
        created=result.created,
        skipped=result.skipped,
        failed=result.failed,
    )


@router.get("/recurring/{template_id}/cancellation", response_model=CancellationResult)
def preview_recurring_cancellation(
    template_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ids = TransactionService(db).preview_cancellation(current_user.id, template_id)
    return CancellationResult(template_id=template_id, ids=ids, deleted=0)


@router.post("/recurring/{template_id}/cancel", response_model=CancellationResult)
def cancel_recurring_series(
    template_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    ids = TransactionService(db).cancel_series(current_user.id, template_id)
    return CancellationResult(template_id=template_id, ids=ids, deleted=len(ids))


@router.post("/recurring/renewals/run", response_model=RenewalRunOut)
def run_recurring_renewals(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return RenewalService().run_with_session(db, user_id=current_user.id)
