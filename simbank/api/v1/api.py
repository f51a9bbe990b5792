"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from simbank.api.v1.endpoints import accounts, cards, invest, pix, users

api_router = APIRouter()

api_router.include_router(users.router, prefix="/users", tags=["Users"])

# Pix, card and investment routers define full paths (some under
# /accounts/{id}/...), so they are mounted before the plain accounts router
# and without an extra prefix.
api_router.include_router(pix.router, tags=["Pix"])
api_router.include_router(cards.router, tags=["Cards"])
api_router.include_router(invest.router, tags=["Investments"])
api_router.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
