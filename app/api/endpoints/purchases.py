# File: app/api/endpoints/purchases.py
"""
Purchase order API endpoints for the ShopDesk system.

This module exposes the purchase-order approval workflow: creation, admin
acceptance, receipt registration, finance verification, final approval,
rejection, cancellation and the stage-scoped edits, plus read-only
projections and statistics.
"""

import logging
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from app.api.deps import (
    RoleChecker,
    get_current_principal,
    get_purchase_query_service,
    get_purchase_service,
)
from app.core.exceptions import (
    BusinessRuleException,
    ConcurrentModificationException,
    EntityNotFoundException,
    ForbiddenException,
    ShopDeskException,
    ValidationException,
)
from app.db.models.enums import PurchaseOrderStatus, UserRole
from app.schemas.auth import Principal
from app.schemas.purchase import (
    AcceptQuantitiesRequest,
    CancelRequest,
    CancelResponse,
    FinalApproveRequest,
    FinanceVerificationRequest,
    PriceEditRequest,
    PurchaseHistoryResponse,
    PurchaseOrderCreate,
    PurchaseOrderItemsUpdate,
    PurchaseOrderResponse,
    PurchaseOrderStats,
    RegisterReceivedRequest,
    RejectRequest,
)
from app.services.purchase_query_service import PurchaseQueryService
from app.services.purchase_service import PurchaseService

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_CODES = (
    (EntityNotFoundException, status.HTTP_404_NOT_FOUND),
    (ValidationException, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ForbiddenException, status.HTTP_403_FORBIDDEN),
    (ConcurrentModificationException, status.HTTP_409_CONFLICT),
    (BusinessRuleException, status.HTTP_409_CONFLICT),
)


def _http_error(exc: ShopDeskException) -> HTTPException:
    """Map a domain failure onto an HTTP error carrying its details."""
    for exc_type, status_code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_code, detail=exc.to_dict())
    logger.error(f"Unexpected failure {exc.code}: {exc.message}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"code": exc.code, "message": "An internal error occurred"},
    )


def _items(request) -> List[dict]:
    return [item.model_dump() for item in request.items]


@router.post("/", response_model=PurchaseOrderResponse, status_code=status.HTTP_201_CREATED)
def create_purchase_order(
    order_in: PurchaseOrderCreate,
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """
    Create a new purchase order.

    The order starts awaiting admin acceptance.
    """
    try:
        return service.create_order(order_in.model_dump(), principal)
    except ShopDeskException as e:
        raise _http_error(e)


@router.get("/", response_model=List[PurchaseOrderResponse])
def list_purchase_orders(
    status_filter: Optional[PurchaseOrderStatus] = Query(None, alias="status", description="Filter by status"),
    branch_id: Optional[int] = Query(None, description="Filter by branch"),
    creator_id: Optional[int] = Query(None, description="Filter by creating user"),
    date_from: Optional[datetime] = Query(None, description="Created at or after"),
    date_to: Optional[datetime] = Query(None, description="Created at or before"),
    supplier: Optional[str] = Query(None, description="Supplier name contains"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of records to return"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseQueryService = Depends(get_purchase_query_service),
) -> Any:
    """
    List purchase orders by one projection.

    The first of status, branch, creator, date range or supplier that is
    given selects the projection; with none, all visible orders are listed.
    """
    try:
        if status_filter is not None:
            return service.list_by_status(principal, status_filter, skip, limit)
        if branch_id is not None:
            return service.list_by_branch(principal, branch_id, skip, limit)
        if creator_id is not None:
            return service.list_by_creator(principal, creator_id, skip, limit)
        if date_from is not None or date_to is not None:
            return service.list_by_date_range(principal, date_from, date_to, skip, limit)
        if supplier is not None:
            return service.list_by_supplier(principal, supplier, skip, limit)
        return service.list_orders(principal, skip, limit)
    except ShopDeskException as e:
        raise _http_error(e)


@router.get("/stats", response_model=PurchaseOrderStats)
def get_purchase_order_stats(
    branch_id: Optional[int] = Query(None, description="Restrict to one branch"),
    principal: Principal = Depends(RoleChecker([UserRole.MANAGER, UserRole.FINANCE])),
    service: PurchaseQueryService = Depends(get_purchase_query_service),
) -> Any:
    """Order counts per status and purchase value totals."""
    try:
        return service.get_stats(principal, branch_id)
    except ShopDeskException as e:
        raise _http_error(e)


@router.get("/{order_id}", response_model=PurchaseOrderResponse)
def get_purchase_order(
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseQueryService = Depends(get_purchase_query_service),
) -> Any:
    try:
        return service.get_by_id(order_id, principal)
    except ShopDeskException as e:
        raise _http_error(e)


@router.get("/{order_id}/history", response_model=List[PurchaseHistoryResponse])
def get_purchase_order_history(
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseQueryService = Depends(get_purchase_query_service),
) -> Any:
    """Audit trail of the order in the order actions happened."""
    try:
        return service.get_history(order_id, principal)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/accept", response_model=PurchaseOrderResponse)
def accept_purchase_order(
    request: AcceptQuantitiesRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """Admin acceptance of requested quantities."""
    try:
        return service.accept_quantities(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/register", response_model=PurchaseOrderResponse)
def register_received_goods(
    request: RegisterReceivedRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """Register quantities physically received."""
    try:
        return service.register_received(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/finance-verification", response_model=PurchaseOrderResponse)
def verify_purchase_order_finance(
    request: FinanceVerificationRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """Finance verification and pricing of registered items."""
    try:
        return service.verify_finance(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/approve", response_model=PurchaseOrderResponse)
def approve_purchase_order(
    request: FinalApproveRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """Final approval of finance-processed items."""
    try:
        return service.final_approve(order_id, principal, request.item_ids, request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/reject", response_model=PurchaseOrderResponse)
def reject_purchase_order(
    request: RejectRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    try:
        return service.reject(order_id, principal, request.reason, request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.post("/{order_id}/cancel", response_model=CancelResponse)
def cancel_purchase_order(
    request: CancelRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    try:
        cancelled = service.cancel(order_id, principal, request.reason, request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)
    return {"id": order_id, "cancelled": cancelled}


@router.put("/{order_id}/items", response_model=PurchaseOrderResponse)
def replace_purchase_order_items(
    request: PurchaseOrderItemsUpdate,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    """Replace the item list of an order that still awaits acceptance."""
    data = {"items": _items(request)}
    if "notes" in request.model_fields_set:
        data["notes"] = request.notes
    try:
        return service.edit_order_items(order_id, principal, data, request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.put("/{order_id}/accepted-quantities", response_model=PurchaseOrderResponse)
def edit_accepted_quantities(
    request: AcceptQuantitiesRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    try:
        return service.edit_accepted_quantities(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.put("/{order_id}/registered-quantities", response_model=PurchaseOrderResponse)
def edit_registered_quantities(
    request: RegisterReceivedRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    try:
        return service.edit_registered_quantities(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)


@router.put("/{order_id}/prices", response_model=PurchaseOrderResponse)
def edit_item_prices(
    request: PriceEditRequest,
    order_id: int = Path(..., description="The ID of the purchase order"),
    principal: Principal = Depends(get_current_principal),
    service: PurchaseService = Depends(get_purchase_service),
) -> Any:
    try:
        return service.edit_prices(order_id, principal, _items(request), request.expected_version)
    except ShopDeskException as e:
        raise _http_error(e)
