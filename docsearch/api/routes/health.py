from fastapi import APIRouter

from docsearch.core.config import settings

router = APIRouter(tags=["health"])


@router.get("/ping")
def ping() -> dict[str, str]:
    return {"message": settings.PING_MESSAGE}
