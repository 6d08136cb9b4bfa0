from fastapi import APIRouter

from vconn.api.routes import auth, marketplace, vendor, wholesaler

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(vendor.router)
api_router.include_router(wholesaler.router)
api_router.include_router(marketplace.router)
