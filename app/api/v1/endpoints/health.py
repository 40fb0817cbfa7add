from fastapi import APIRouter

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health() -> dict:
    """Liveness check; touches neither the database nor Redis."""
    return {"status": "ok"}
