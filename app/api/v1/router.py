from fastapi import APIRouter

from app.api.v1.endpoints import health, qualification, rubric

router = APIRouter(prefix="/api/v1")

router.include_router(rubric.router)
router.include_router(qualification.router)
router.include_router(health.router)
