import base64

from cachetools import TTLCache
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from neurofeed.core.config import settings
from neurofeed.core.security import mask_secret
from neurofeed.services.redis_service import RedisService, redis_service


class CredentialStore:
    """Collaborator API keys, encrypted at rest under fixed keys."""

    KEY_PREFIX = settings.REDIS_CREDENTIALS_KEY

    def __init__(self, backend: RedisService | None = None, salt: str | None = None) -> None:
        self.backend = backend or redis_service
        self.salt = salt if salt is not None else settings.TOKEN_SALT
        self._cipher: Fernet | None = None
        # Decrypted secrets, so status reads skip the key derivation
        self._secrets: TTLCache = TTLCache(maxsize=16, ttl=600)
        if not self.salt or self.salt == "change-me":
            logger.warning(
                "TOKEN_SALT is missing or using the default placeholder. Set a strong value to secure credentials."
            )

    def _ensure_secure_salt(self) -> None:
        if not self.salt or self.salt == "change-me":
            logger.error("Refusing to store credentials because TOKEN_SALT is unset or using the insecure default.")
            raise RuntimeError(
                "Server misconfiguration: TOKEN_SALT must be set to a non-default value before storing credentials."
            )

    def _get_cipher(self) -> Fernet:
        if self._cipher is not None:
            return self._cipher
        salt = b"n3uR0f33dCr3dS4lt9kypzQ1LmR32b8h"
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=200_000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.salt.encode("utf-8")))
        self._cipher = Fernet(key)
        return self._cipher

    def encrypt(self, secret: str) -> str:
        return self._get_cipher().encrypt(secret.encode("utf-8")).decode("utf-8")

    def decrypt(self, enc: str) -> str:
        return self._get_cipher().decrypt(enc.encode("utf-8")).decode("utf-8")

    def _format_key(self, name: str) -> str:
        return f"{self.KEY_PREFIX}{name}"

    async def set(self, name: str, secret: str) -> bool:
        self._ensure_secure_salt()
        saved = await self.backend.set(self._format_key(name), self.encrypt(secret))
        if saved:
            self._secrets[name] = secret
            logger.info(f"Stored {name} credential {mask_secret(secret)}")
        return saved

    async def get(self, name: str) -> str | None:
        if name in self._secrets:
            return self._secrets[name]
        enc = await self.backend.get(self._format_key(name))
        if not enc:
            return None
        try:
            secret = self.decrypt(enc)
        except InvalidToken:
            logger.warning(f"Decryption failed for stored {name} credential; ignoring it")
            return None
        self._secrets[name] = secret
        return secret

    async def clear(self, name: str) -> bool:
        self._secrets.pop(name, None)
        return await self.backend.delete(self._format_key(name))


credential_store = CredentialStore()
