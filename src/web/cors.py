"""
CORS headers for cross-origin form submission.

Landing pages on other domains post straight to the intake endpoint, so
every response from it (success or error) carries these headers. The
origin is echoed only when it is on the allow-list; a "*" entry makes the
endpoint permissive.
"""

from typing import Dict, Optional

from config.settings import Settings

ALLOW_METHODS = "POST, OPTIONS"
ALLOW_HEADERS = "Content-Type"
MAX_AGE = "86400"


def cors_headers(origin: Optional[str], settings: Settings, preflight: bool = False) -> Dict[str, str]:
    """
    Build CORS response headers.

    Args:
        origin: Value of the request's Origin header.
        settings: Application settings holding the allow-list.
        preflight: Include the method/header/max-age preflight headers.

    Returns:
        Header dict (possibly without Access-Control-Allow-Origin).
    """
    headers: Dict[str, str] = {}
    if settings.cors_permissive:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin.rstrip("/") in settings.cors_origin_list:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Vary"] = "Origin"

    if preflight:
        headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
        headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
        headers["Access-Control-Max-Age"] = MAX_AGE
    return headers
