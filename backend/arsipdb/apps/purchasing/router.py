from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from arsipdb.security import get_current_active_user, require_admin
from arsipdb.database import get_db, get_read_db
from arsipdb.apps.accounts import models as account_models
from arsipdb.utils.dates import utcnow

from . import models, receiving, schemas, services

router = APIRouter(prefix="", tags=["purchasing"])


def _page(total: int, page: int, limit: int) -> schemas.Pagination:
    return schemas.Pagination(page=page, limit=limit, total=total, pages=services.pages_for(total, limit))


# ---------------------------------------------------------------------------
# PURCHASE REQUESTS
# ---------------------------------------------------------------------------


@router.get("/purchase-requests", response_model=schemas.PurchaseRequestPage)
def list_purchase_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    request_status: Optional[models.PurchaseRequestStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = services.list_purchase_requests(
        db, page=page, limit=limit, request_status=request_status, search=search
    )
    return schemas.PurchaseRequestPage(
        purchase_requests=[schemas.PurchaseRequestRead.model_validate(pr) for pr in rows],
        pagination=_page(total, page, limit),
    )


@router.post(
    "/purchase-requests",
    response_model=schemas.PurchaseRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def create_purchase_request(
    payload: schemas.PurchaseRequestCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    pr = services.create_purchase_request(db, payload=payload, requester=current_user)
    db.refresh(pr)
    return pr


@router.get("/purchase-requests/my-requests", response_model=schemas.PurchaseRequestPage)
def list_my_purchase_requests(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    request_status: Optional[models.PurchaseRequestStatus] = Query(None, alias="status"),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = services.list_purchase_requests(
        db,
        page=page,
        limit=limit,
        request_status=request_status,
        requested_by_id=current_user.id,
    )
    return schemas.PurchaseRequestPage(
        purchase_requests=[schemas.PurchaseRequestRead.model_validate(pr) for pr in rows],
        pagination=_page(total, page, limit),
    )


@router.get("/purchase-requests/available", response_model=List[schemas.PurchaseRequestRead])
def list_available_purchase_requests(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_available_requests(db)


@router.get("/purchase-requests/stats", response_model=schemas.PurchaseRequestStats)
def purchase_request_stats(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.purchase_request_stats(db, viewer=current_user)


@router.get("/purchase-requests/reports", response_model=schemas.PurchaseRequestReport)
def purchase_request_report(
    report_type: Literal["summary", "detailed", "trends"] = Query("summary", alias="type"),
    period: int = Query(30, ge=1, le=3650, description="Window in days"),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.purchase_request_report(
        db, viewer=current_user, report_type=report_type, period_days=period
    )


@router.get("/purchase-requests/export")
def export_purchase_requests(
    export_format: Literal["json", "csv"] = Query("json", alias="format"),
    request_status: Optional[models.PurchaseRequestStatus] = Query(None, alias="status"),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows = services.export_purchase_requests(
        db,
        viewer=current_user,
        request_status=request_status,
        start_date=start_date,
        end_date=end_date,
    )
    if export_format == "csv":
        filename = f"purchase-requests-{date.today().isoformat()}.csv"
        return StreamingResponse(
            iter([services.render_csv(rows)]),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )
    return {
        "data": [schemas.PurchaseRequestRead.model_validate(pr).model_dump(mode="json") for pr in rows],
        "metadata": {
            "export_date": utcnow().isoformat(),
            "total_records": len(rows),
            "filters": {
                "status": request_status.value if request_status else None,
                "start_date": start_date.isoformat() if start_date else None,
                "end_date": end_date.isoformat() if end_date else None,
            },
            "exported_by": {
                "id": current_user.id,
                "name": current_user.name,
                "role": current_user.role.value,
            },
        },
    }


@router.post("/purchase-requests/bulk-review", response_model=schemas.BulkReviewResult)
def bulk_review_purchase_requests(
    payload: schemas.PurchaseRequestBulkReview,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    reviewed = services.bulk_review_purchase_requests(db, payload=payload, reviewer=current_user)
    db.commit()
    for pr in reviewed:
        db.refresh(pr)
    return schemas.BulkReviewResult(
        updated=len(reviewed),
        status=reviewed[0].status,
        purchase_requests=[schemas.PurchaseRequestRead.model_validate(pr) for pr in reviewed],
    )


@router.get("/purchase-requests/{request_id}", response_model=schemas.PurchaseRequestRead)
def get_purchase_request(
    request_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_visible_purchase_request(db, request_id=request_id, viewer=current_user)


@router.patch("/purchase-requests/{request_id}", response_model=schemas.PurchaseRequestRead)
def update_purchase_request(
    request_id: str,
    payload: schemas.PurchaseRequestUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    pr = services.update_purchase_request(db, request_id=request_id, payload=payload, actor=current_user)
    db.commit()
    db.refresh(pr)
    return pr


@router.post("/purchase-requests/{request_id}/review", response_model=schemas.PurchaseRequestRead)
def review_purchase_request(
    request_id: str,
    payload: schemas.PurchaseRequestReview,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    pr = services.review_purchase_request(db, request_id=request_id, payload=payload, reviewer=current_user)
    db.commit()
    db.refresh(pr)
    return pr


@router.delete("/purchase-requests/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_purchase_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_purchase_request(db, request_id=request_id, actor=current_user)
    db.commit()


# ---------------------------------------------------------------------------
# RECEPTIONS
# ---------------------------------------------------------------------------


@router.get("/reception", response_model=schemas.ReceptionPage)
def list_receptions(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    reception_status: Optional[models.ReceptionStatus] = Query(None, alias="status"),
    search: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    rows, total = receiving.list_receptions(
        db, page=page, limit=limit, reception_status=reception_status, search=search
    )
    return schemas.ReceptionPage(
        receptions=[schemas.ReceptionRead.model_validate(r) for r in rows],
        pagination=_page(total, page, limit),
    )


@router.post(
    "/reception",
    response_model=schemas.ReceptionRead,
    status_code=status.HTTP_201_CREATED,
)
def create_reception(
    payload: schemas.ReceptionCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    reception = receiving.create_reception(db, payload=payload, actor=current_user)
    db.refresh(reception)
    return reception


@router.get("/reception/stats", response_model=schemas.ReceptionStats)
def reception_stats(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return receiving.reception_stats(db)


@router.get("/reception/{reception_id}", response_model=schemas.ReceptionRead)
def get_reception(
    reception_id: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return receiving.get_reception(db, reception_id)


@router.patch("/reception/{reception_id}", response_model=schemas.ReceptionRead)
def update_reception(
    reception_id: str,
    payload: schemas.ReceptionUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    reception = receiving.update_reception(db, reception_id=reception_id, payload=payload, actor=current_user)
    db.refresh(reception)
    return reception


@router.delete("/reception/{reception_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_reception(
    reception_id: str,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(require_admin),
):
    receiving.delete_reception(db, reception_id=reception_id, actor=current_user)
