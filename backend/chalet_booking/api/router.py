"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from chalet_booking.api.routes import auth, bookings, listings, messages, services, transport

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(listings.router)
api_router.include_router(bookings.router)
api_router.include_router(transport.router)
api_router.include_router(services.router)
api_router.include_router(messages.router)
