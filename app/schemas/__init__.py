# File: app/schemas/__init__.py
"""
Schemas package for the ShopDesk API.

This module exports Pydantic models used for request validation,
response serialization, and data transfer throughout the application.
"""

from .auth import Principal
from .purchase import (
    AcceptItem,
    AcceptQuantitiesRequest,
    CancelRequest,
    CancelResponse,
    FinalApproveRequest,
    FinanceItem,
    FinanceVerificationRequest,
    PriceEditItem,
    PriceEditRequest,
    PurchaseHistoryResponse,
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
    PurchaseOrderItemResponse,
    PurchaseOrderItemsUpdate,
    PurchaseOrderResponse,
    PurchaseOrderStats,
    RegisterItem,
    RegisterReceivedRequest,
    RejectRequest,
    WorkflowRequest,
)
from .token import LoginRequest, Token, TokenPayload

__all__ = [
    # Authentication
    'LoginRequest', 'Token', 'TokenPayload', 'Principal',

    # Purchase workflow requests
    'WorkflowRequest', 'PurchaseOrderCreate', 'PurchaseOrderItemCreate', 'PurchaseOrderItemsUpdate',
    'AcceptItem', 'AcceptQuantitiesRequest', 'RegisterItem', 'RegisterReceivedRequest',
    'FinanceItem', 'FinanceVerificationRequest', 'PriceEditItem', 'PriceEditRequest',
    'FinalApproveRequest', 'RejectRequest', 'CancelRequest',

    # Purchase responses
    'PurchaseOrderResponse', 'PurchaseOrderItemResponse', 'PurchaseHistoryResponse',
    'PurchaseOrderStats', 'CancelResponse',
]
