"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from lucalendar.api.v1 import calendar

api_router = APIRouter()

api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
