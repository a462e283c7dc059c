import asyncio

from google import genai
from google.genai import errors, types
from loguru import logger
from pydantic import BaseModel

from neurofeed.core.config import settings
from neurofeed.core.exceptions import CollaboratorUnavailable, MalformedResponse, RateLimited
from neurofeed.core.security import mask_secret


class GeminiService:
    def __init__(self, model: str = settings.DEFAULT_GEMINI_MODEL, api_key: str | None = settings.GEMINI_API_KEY):
        self.model = model
        self.client = None
        self.configure(api_key)

    def configure(self, api_key: str | None) -> None:
        """(Re)build the client, e.g. after a key is saved or cleared."""
        self.client = None
        if not api_key:
            logger.warning("GEMINI_API_KEY not set. Collaborator calls will fall back to neutral results.")
            return
        try:
            self.client = genai.Client(api_key=api_key)
            logger.info(f"Gemini client configured with key {mask_secret(api_key)}")
        except Exception as e:
            logger.warning(f"Failed to initialize Gemini client: {e}")

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def generate_json(self, prompt: str, schema: type[BaseModel], name: str = "gemini") -> str:
        """
        Ask for a JSON answer constrained to `schema` and return the raw text.

        Errors are translated into the collaborator taxonomy: 429 becomes
        RateLimited, an empty body MalformedResponse, anything else
        CollaboratorUnavailable.
        """
        if not self.client:
            raise CollaboratorUnavailable(name, "Gemini client not initialized")
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=schema,
                    temperature=0.2,
                ),
            )
        except errors.APIError as e:
            if e.code == 429:
                raise RateLimited(name, str(e)) from e
            raise CollaboratorUnavailable(name, f"{e.code} {e.message}") from e
        except Exception as e:
            raise CollaboratorUnavailable(name, str(e)) from e

        text = (response.text or "").strip()
        if not text:
            raise MalformedResponse(name, "Empty response from Gemini")
        return text

    async def generate_json_async(self, prompt: str, schema: type[BaseModel], name: str = "gemini") -> str:
        """Async wrapper to avoid blocking the event loop during network calls."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: self.generate_json(prompt, schema, name))


gemini_service = GeminiService()
