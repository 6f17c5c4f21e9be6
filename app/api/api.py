# app/api/api.py

from fastapi import APIRouter

from app.api.endpoints import auth, purchases

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(purchases.router, prefix="/purchase-orders", tags=["Purchase Orders"])
