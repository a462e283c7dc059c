MASK = "****"


def mask_secret(secret: str | None, visible: int = 4) -> str | None:
    """
    Mask an API key for logs and API responses, e.g. "AIzaSyExampleKey123" -> "****y123".

    Keys too short to hide anything are masked completely. Missing keys stay None.
    """
    if not secret:
        return None
    secret = secret.strip()
    if len(secret) <= visible * 2:
        return MASK
    return f"{MASK}{secret[-visible:]}"
