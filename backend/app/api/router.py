from fastapi import APIRouter

from app.api.routes import health, inquiries

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(inquiries.router)
