from fastapi import APIRouter

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Public health check")
async def health() -> dict[str, str]:
    return {"status": "ok"}
