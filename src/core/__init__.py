"""
FireChain - Core Utilities
Central configuration, logging, errors and the geo codec.
"""

from src.core.config import settings
from src.core.constants import (
    GEO_SCALE,
    INCIDENTS_COLLECTION,
    FUND_REQUESTS_COLLECTION,
    BALANCES_COLLECTION,
    FUND_POOL_COLLECTION,
)
from src.core.exceptions import FireChainError
from src.core.geo_codec import (
    BoundingBox,
    encode,
    decode,
    validate_coordinates,
)

__all__ = [
    "settings",
    "GEO_SCALE",
    "INCIDENTS_COLLECTION",
    "FUND_REQUESTS_COLLECTION",
    "BALANCES_COLLECTION",
    "FUND_POOL_COLLECTION",
    "FireChainError",
    "BoundingBox",
    "encode",
    "decode",
    "validate_coordinates",
]
