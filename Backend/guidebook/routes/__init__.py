"""Routers for the /api surface. Every router except onboarding is tenant-guarded."""

from . import bookings, customers, dashboard, documents, experiences, guides, locations, payments, settings, users

ROUTERS = [
    users.router,
    customers.router,
    locations.router,
    experiences.router,
    bookings.router,
    documents.router,
    payments.router,
    guides.router,
    dashboard.router,
    settings.router,
]
