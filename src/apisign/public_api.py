from __future__ import annotations

import httpx

from apisign.adapters.dispatcher import RequestDispatcher
from apisign.private_api import join_url


def public_api_request(
    api_link: str,
    endpoint_path: str,
    *,
    dispatcher: RequestDispatcher | None = None,
) -> httpx.Response:
    """GET a public endpoint; no credentials are involved."""
    if dispatcher is not None:
        return dispatcher.get(join_url(api_link, endpoint_path))
    with RequestDispatcher() as owned:
        return owned.get(join_url(api_link, endpoint_path))
