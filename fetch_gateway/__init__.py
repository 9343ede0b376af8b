"""fetch-gateway: SSRF-guarded, robots-aware URL fetching."""

from fetch_gateway.gateway import FetchGateway
from fetch_gateway.handler import HttpResponse, handle_request

__all__ = ["FetchGateway", "HttpResponse", "handle_request"]
