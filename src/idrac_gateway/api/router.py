from __future__ import annotations

from fastapi import APIRouter

from idrac_gateway.api.auth import router as auth_router
from idrac_gateway.api.power import router as power_router

router = APIRouter(prefix="/api")

router.include_router(auth_router)
router.include_router(power_router)
