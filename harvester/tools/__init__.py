# Tools module
from .http_client import FetchClient
from .url_utils import (
    canonicalize_url,
    absolutize,
    registered_domain,
    is_same_site,
    normalize_image_url,
    date_from_url,
    build_lightweight_url,
)

__all__ = [
    # HTTP
    "FetchClient",
    # URL utils
    "canonicalize_url",
    "absolutize",
    "registered_domain",
    "is_same_site",
    "normalize_image_url",
    "date_from_url",
    "build_lightweight_url",
]
