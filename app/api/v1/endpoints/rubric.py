from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import get_rubric_config_service
from app.schemas.rubric import (
    RubricConfigInput,
    RubricConfigResponse,
    RubricValidationResponse,
)
from app.services.rubric_config_service import RubricConfigService

router = APIRouter(
    prefix="/organizations/{organization_id}/bant-config", tags=["BANT Configuration"]
)

_AGENT_QUERY = Query(
    None,
    description="AI agent the rubric applies to; omit for the organization-wide rubric.",
)


@router.get("", response_model=RubricConfigResponse)
async def get_bant_config(
    organization_id: UUID,
    agent_id: Optional[UUID] = _AGENT_QUERY,
    service: RubricConfigService = Depends(get_rubric_config_service),
) -> RubricConfigResponse:
    """Return the rubric in force: agent-specific, organization-wide or the default."""
    return await service.get_effective(organization_id, agent_id)


@router.put("", response_model=RubricConfigResponse)
async def put_bant_config(
    organization_id: UUID,
    config: RubricConfigInput,
    agent_id: Optional[UUID] = _AGENT_QUERY,
    service: RubricConfigService = Depends(get_rubric_config_service),
) -> RubricConfigResponse:
    """Validate and store a custom rubric.

    Every broken rule is reported at once (HTTP 422); nothing is written
    unless the whole rubric is valid.
    """
    return await service.save(organization_id, agent_id, config)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_bant_config(
    organization_id: UUID,
    agent_id: Optional[UUID] = _AGENT_QUERY,
    service: RubricConfigService = Depends(get_rubric_config_service),
) -> Response:
    await service.delete(organization_id, agent_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/validate", response_model=RubricValidationResponse)
async def validate_bant_config(
    organization_id: UUID,
    config: RubricConfigInput,
    service: RubricConfigService = Depends(get_rubric_config_service),
) -> RubricValidationResponse:
    """Dry run: report validation issues and the generated scoring description."""
    return service.check(config)
