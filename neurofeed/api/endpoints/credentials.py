from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from neurofeed.core.config import settings
from neurofeed.core.constants import GEMINI_CREDENTIAL_NAME
from neurofeed.core.security import mask_secret
from neurofeed.services.credential_store import credential_store
from neurofeed.services.gemini import gemini_service

router = APIRouter(prefix="/credentials", tags=["credentials"])


class CredentialRequest(BaseModel):
    api_key: str = Field(min_length=1, description="Gemini API key (stored encrypted)")


class CredentialStatus(BaseModel):
    configured: bool
    key: str | None = None


@router.get("/gemini", response_model=CredentialStatus)
async def get_gemini_credential() -> CredentialStatus:
    stored = await credential_store.get(GEMINI_CREDENTIAL_NAME)
    key = stored or settings.GEMINI_API_KEY
    return CredentialStatus(configured=gemini_service.enabled, key=mask_secret(key))


@router.put("/gemini", response_model=CredentialStatus)
async def save_gemini_credential(payload: CredentialRequest) -> CredentialStatus:
    api_key = payload.api_key.strip()
    # Remove quotes if present
    if api_key.startswith('"') and api_key.endswith('"'):
        api_key = api_key[1:-1].strip()
    if not api_key:
        raise HTTPException(status_code=400, detail="API key required.")

    try:
        saved = await credential_store.set(GEMINI_CREDENTIAL_NAME, api_key)
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if not saved:
        logger.error("Failed to persist Gemini credential")
        raise HTTPException(status_code=503, detail="Storage temporarily unavailable.")

    gemini_service.configure(api_key)
    return CredentialStatus(configured=gemini_service.enabled, key=mask_secret(api_key))


@router.delete("/gemini", response_model=CredentialStatus)
async def clear_gemini_credential() -> CredentialStatus:
    await credential_store.clear(GEMINI_CREDENTIAL_NAME)
    # Fall back to the environment key, if any
    gemini_service.configure(settings.GEMINI_API_KEY)
    key = settings.GEMINI_API_KEY
    return CredentialStatus(configured=gemini_service.enabled, key=mask_secret(key))
