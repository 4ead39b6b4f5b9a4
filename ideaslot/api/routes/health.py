from typing import Any, Dict

from fastapi import APIRouter, Depends

from ideaslot.api.dependencies import get_container
from ideaslot.container import ServiceContainer

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz(container: ServiceContainer = Depends(get_container)) -> Dict[str, Any]:
    """Liveness plus which research sources can currently run."""
    return {
        "status": "ok",
        "environment": container.settings.environment,
        "sources": {
            "reddit": container.reddit_collector.is_available,
            "twitter": container.twitter_collector.is_available,
            "llm": container.llm is not None,
            "store": container.store is not None,
        },
        "stateStore": "file" if container.state_store.durable else "memory",
    }
