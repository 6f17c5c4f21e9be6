# File: app/schemas/purchase.py
"""
Purchase order schemas for the ShopDesk API.

This module defines Pydantic models for the purchase workflow requests
(create, accept, register, verify, approve, reject, cancel and the edit
actions) and for order, item, history and statistics responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.db.models.enums import (
    ItemStage,
    PurchaseHistoryAction,
    PurchaseOrderStatus,
)


class WorkflowRequest(BaseModel):
    """Common fields of every workflow action on an existing order."""

    expected_version: Optional[int] = Field(
        None, ge=1, description="Order version the caller last saw; mismatches are rejected"
    )


# Creation and item replacement
class PurchaseOrderItemCreate(BaseModel):
    product_id: int = Field(..., gt=0, description="Product to purchase")
    quantity_requested: int = Field(..., gt=0, description="Quantity requested")
    supplier_name: Optional[str] = Field(None, max_length=255, description="Supplier (free text)")


class PurchaseOrderCreate(BaseModel):
    """Model for creating purchase orders."""

    branch_id: Optional[int] = Field(
        None, gt=0, description="Branch the order is for; defaults to the caller's branch"
    )
    notes: Optional[str] = Field(None, description="Additional notes")
    items: List[PurchaseOrderItemCreate] = Field(..., min_length=1)


class PurchaseOrderItemsUpdate(WorkflowRequest):
    """Replacement item list for an order awaiting acceptance."""

    notes: Optional[str] = None
    items: List[PurchaseOrderItemCreate] = Field(..., min_length=1)


# Item-level actions
class AcceptItem(BaseModel):
    item_id: int
    quantity_accepted: int = Field(..., ge=0)
    supplier_name: Optional[str] = Field(None, max_length=255)


class AcceptQuantitiesRequest(WorkflowRequest):
    items: List[AcceptItem] = Field(..., min_length=1)


class RegisterItem(BaseModel):
    item_id: int
    quantity_registered: int = Field(..., ge=0)


class RegisterReceivedRequest(WorkflowRequest):
    items: List[RegisterItem] = Field(..., min_length=1)


class FinanceItem(BaseModel):
    item_id: int
    verified: bool = True
    buying_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    unit_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    supplier_name: Optional[str] = Field(None, max_length=255)


class FinanceVerificationRequest(WorkflowRequest):
    items: List[FinanceItem] = Field(..., min_length=1)


class PriceEditItem(BaseModel):
    item_id: int
    buying_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    unit_price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    supplier_name: Optional[str] = Field(None, max_length=255)


class PriceEditRequest(WorkflowRequest):
    items: List[PriceEditItem] = Field(..., min_length=1)


class FinalApproveRequest(WorkflowRequest):
    item_ids: List[int] = Field(
        default_factory=list, description="Items to approve; empty approves every eligible item"
    )


class RejectRequest(WorkflowRequest):
    reason: str = Field(..., min_length=1, max_length=2000)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Reason must not be blank")
        return v.strip()


class CancelRequest(WorkflowRequest):
    reason: Optional[str] = Field(None, max_length=2000)


# Responses
class PurchaseOrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    supplier_name: Optional[str] = None
    quantity_requested: int
    quantity_accepted: Optional[int] = None
    accepted_at: Optional[datetime] = None
    accepted_by_user_id: Optional[int] = None
    quantity_registered: Optional[int] = None
    registered_at: Optional[datetime] = None
    registered_by_user_id: Optional[int] = None
    registration_edit_count: int = 0
    last_registration_edit_at: Optional[datetime] = None
    finance_verified: bool = False
    finance_verified_at: Optional[datetime] = None
    finance_verified_by_user_id: Optional[int] = None
    buying_price: Optional[Decimal] = None
    unit_price: Optional[Decimal] = None
    price_set_at: Optional[datetime] = None
    price_set_by_user_id: Optional[int] = None
    price_edit_count: int = 0
    approved_at: Optional[datetime] = None
    approved_by_user_id: Optional[int] = None
    stage: ItemStage
    profit_margin: Optional[Decimal] = None
    can_edit: bool
    line_total: Decimal


class PurchaseOrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    branch_id: int
    created_by_user_id: int
    status: PurchaseOrderStatus
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    version: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    total_items: int
    accepted_items: int
    registered_items: int
    finance_processed_items: int
    approved_items: int
    total_value: Decimal
    total_cost: Decimal
    items: List[PurchaseOrderItemResponse]


class PurchaseHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    purchase_order_id: int
    purchase_order_item_id: Optional[int] = None
    action: PurchaseHistoryAction
    performed_by_user_id: int
    details: Optional[str] = None
    created_at: datetime


class PurchaseOrderStats(BaseModel):
    branch_id: Optional[int] = None
    total_orders: int
    by_status: Dict[str, int]
    pending_orders: int
    in_progress_orders: int
    completed_orders: int
    closed_orders: int
    total_purchase_value: Decimal
    average_order_value: Decimal


class CancelResponse(BaseModel):
    id: int
    cancelled: bool
