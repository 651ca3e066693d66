"""REST API endpoints for the sidekick server.

Business logic is delegated to:
- FireflyClient: image generation
- ImageReplacer: Google Docs / Sheets image replacement

Endpoints:
- POST /generate              - generate an image from a prompt
- POST /replace-image         - swap the image into a Google Doc or Sheet
- GET  /api/health            - health check
- GET  /api/health/ready      - readiness check

The two POST endpoints are also served under their plugin paths,
/api/firefly/generate and /api/google/replace-image.
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from sidekick_server.config import Settings, get_settings
from sidekick_server.credentials import GoogleServiceAccountProvider, ImsCredentialProvider
from sidekick_server.firefly import FireflyClient
from sidekick_server.replace import DEFAULT_PLACEHOLDER, ImageReplacer, ReplaceRequest

router = APIRouter()


# =============================================================================
# Request / response models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ImageSize(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class GenerateBody(_CamelModel):
    prompt: str = Field(min_length=1)
    size: ImageSize | None = None


class GenerateResponse(_CamelModel):
    image_url: str = Field(serialization_alias="imageUrl")
    raw: dict[str, Any]


class ReplaceBody(_CamelModel):
    doc_url: str = Field(alias="docUrl", min_length=1)
    image_url: str = Field(alias="imageUrl", min_length=1)
    placeholder: str = Field(default=DEFAULT_PLACEHOLDER, min_length=1)
    width_pt: float = Field(default=200.0, alias="widthPt", gt=0)
    height_pt: float = Field(default=200.0, alias="heightPt", gt=0)
    document_id: str | None = Field(default=None, alias="documentId")


# =============================================================================
# Dependencies
# =============================================================================


async def get_firefly_client(settings: Settings = Depends(get_settings)):
    """Yield a per-request Firefly client and close it afterwards."""
    client = FireflyClient(
        credentials=ImsCredentialProvider(settings),
        api_key=settings.firefly_client_id,
        timeout=settings.firefly_timeout,
    )
    try:
        yield client
    finally:
        await client.close()


def get_image_replacer(settings: Settings = Depends(get_settings)) -> ImageReplacer:
    return ImageReplacer(
        credentials=GoogleServiceAccountProvider(settings),
        timeout=settings.google_timeout,
    )


# =============================================================================
# Health Endpoints
# =============================================================================


@router.get("/api/health")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "sidekick-server"}


@router.get("/api/health/ready")
async def readiness_check() -> dict:
    """Readiness check for Kubernetes/Cloud Run."""
    settings = get_settings()
    return {
        "status": "ready",
        "service": "sidekick-server",
        "environment": settings.environment,
    }


# =============================================================================
# Generation and replacement
# =============================================================================


@router.post("/generate")
@router.post("/api/firefly/generate", include_in_schema=False)
async def generate(
    body: GenerateBody,
    client: FireflyClient = Depends(get_firefly_client),
) -> dict:
    """Generate an image for the prompt and return its URL with the raw response."""
    size = body.size.model_dump() if body.size else None
    result = await client.generate(body.prompt, size)
    return GenerateResponse(image_url=result.image_url, raw=result.raw).model_dump(by_alias=True)


@router.post("/replace-image")
@router.post("/api/google/replace-image", include_in_schema=False)
async def replace_image(
    body: ReplaceBody,
    replacer: ImageReplacer = Depends(get_image_replacer),
) -> dict:
    """Replace the placeholder (or first image) in a Doc, or placeholder cells in a Sheet."""
    result = await replacer.replace(
        ReplaceRequest(
            doc_url=body.doc_url,
            image_url=body.image_url,
            placeholder=body.placeholder,
            width_pt=body.width_pt,
            height_pt=body.height_pt,
            document_id=body.document_id,
        )
    )
    response: dict[str, Any] = {"replaced": result.replaced, "type": result.type}
    if result.mode is not None:
        response["mode"] = result.mode
    return response
