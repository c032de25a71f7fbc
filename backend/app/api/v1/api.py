from fastapi import APIRouter

from backend.app.api.v1.endpoints import admin, auth, inventory, locations, products

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(locations.router, prefix="/locations", tags=["locations"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
