"""CDN client package: batch upload of proxy URLs to the CDN service.

RULES:
- All CDN HTTP calls go through CDNClient
- Authentication is via Bearer token from config
"""

from cdn_relay.cdn.client import CDNAPIError, CDNClient
from cdn_relay.cdn.models import DeployedFile, UploadResult

__all__ = ["CDNAPIError", "CDNClient", "DeployedFile", "UploadResult"]
