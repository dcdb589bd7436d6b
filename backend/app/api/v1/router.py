"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import (
    auth, users, vehicles,
    trips, trip_ledger, trip_pod, trip_memos,
    payments, maintenance, reports,
    cities, expenses, advances, driver_calculations,
    activity_logs
)

router = APIRouter()

# Authentication and accounts
router.include_router(auth.router)
router.include_router(users.router)

# Fleet
router.include_router(vehicles.router)
router.include_router(maintenance.router)
router.include_router(driver_calculations.router)

# Trips (the trips router owns /trips/{id}; the others only add sub-paths)
router.include_router(trips.router)
router.include_router(trip_ledger.router)
router.include_router(trip_pod.router)
router.include_router(trip_memos.router)

# Money
router.include_router(payments.router)
router.include_router(advances.router)
router.include_router(expenses.router)

# Reference data, reports and audit trail
router.include_router(cities.router)
router.include_router(reports.router)
router.include_router(activity_logs.router)
