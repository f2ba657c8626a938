from fastapi import APIRouter
from app.api.v1 import auth, state, plans, payments

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router)
api_router.include_router(state.router)
api_router.include_router(plans.router)
api_router.include_router(payments.router)
