"""
Bucket listing endpoint.

Returns what the UI needs to draw the bucket selector. Credentials,
endpoints and regions stay on the server.
"""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..dependencies import BucketConfigsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class BucketSummary(BaseModel):
    """Public view of a configured bucket."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    display_name: str
    provider: str


@router.get(
    "",
    response_model=list[BucketSummary],
    status_code=status.HTTP_200_OK,
    summary="List configured buckets",
)
async def list_buckets(configs: BucketConfigsDep) -> list[BucketSummary]:
    logger.debug("Listing buckets", extra={"count": len(configs)})
    return [BucketSummary.model_validate(config.public_view()) for config in configs]
