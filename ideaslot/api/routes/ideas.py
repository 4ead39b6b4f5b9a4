"""Ingestion endpoint: store generated ideas that are not duplicates."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ideaslot.api.dependencies import get_container, require_maintenance_auth
from ideaslot.container import ServiceContainer
from ideaslot.exceptions import ValidationError
from ideaslot.similarity import validate_threshold

router = APIRouter(prefix="/ideas", tags=["ideas"])


class IngestRequest(BaseModel):
    ideas: Any = None
    prompt: Optional[str] = None
    threshold: Any = None


@router.post("/ingest", dependencies=[Depends(require_maintenance_auth)])
async def ingest_ideas(
    body: IngestRequest,
    container: ServiceContainer = Depends(get_container),
) -> Dict[str, Any]:
    if not isinstance(body.ideas, list) or not body.ideas:
        raise ValidationError("ideas must be a non-empty list")
    threshold = None if body.threshold is None else validate_threshold(body.threshold)

    report = await container.idea_ingestion().ingest(body.ideas, body.prompt, threshold)
    return report.to_dict()
