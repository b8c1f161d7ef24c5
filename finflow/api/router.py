from fastapi import APIRouter

from finflow.api.payouts import payouts_router
from finflow.api.requests import requests_router
from finflow.api.salaries import salaries_router
from finflow.api.users import users_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(salaries_router)
api_router.include_router(payouts_router)
api_router.include_router(users_router)
