"""Signed requests against private (2FA protected) endpoints.

A private call is assembled in four steps:

* a fresh nonce and a one-time password are generated,
* both are form-urlencoded, nonce first, into the request body,
* the body, the nonce and the endpoint path are signed with the API secret,
* the body is POSTed with the API key and signature as headers.

A new nonce is drawn for every request, so a signature is never reused.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from apisign.adapters.dispatcher import AsyncRequestDispatcher, RequestDispatcher
from apisign.auth.encoding import encode_payload
from apisign.auth.nonce import NonceSource
from apisign.auth.otp import OtpGenerator
from apisign.auth.signing import build_auth_headers, decode_api_secret, sign
from apisign.models import Credentials, SignedRequest

logger = logging.getLogger(__name__)


def join_url(api_link: str, endpoint_path: str) -> str:
    return api_link.rstrip("/") + endpoint_path


def prepare_private_request(
    credentials: Credentials,
    api_link: str,
    endpoint_path: str,
    *,
    extra_pairs: Iterable[tuple[str, str]] = (),
    nonce_source: NonceSource | None = None,
    otp_generator: OtpGenerator | None = None,
    nonce: str | None = None,
    otp: str | None = None,
) -> SignedRequest:
    """Sign a private request without sending it.

    A fixed ``nonce`` or ``otp`` replaces the drawn value, which lets a request
    be reproduced; the OTP seed is then never read.
    """
    # Secrets must decode before a nonce is drawn.
    decode_api_secret(credentials.api_secret)
    if otp is None:
        otp = (otp_generator or OtpGenerator()).generate(credentials.otp_seed)
    if nonce is None:
        nonce = (nonce_source or NonceSource()).next_nonce()

    body = encode_payload([("nonce", nonce), ("otp", otp), *extra_pairs])
    signature = sign(nonce, body, endpoint_path, credentials.api_secret)
    return SignedRequest(
        url=join_url(api_link, endpoint_path),
        endpoint_path=endpoint_path,
        nonce=nonce,
        body=body,
        headers=build_auth_headers(credentials.api_key, signature),
    )


class PrivateApiClient:
    def __init__(
        self,
        credentials: Credentials,
        api_link: str,
        *,
        dispatcher: RequestDispatcher | None = None,
        nonce_source: NonceSource | None = None,
        otp_generator: OtpGenerator | None = None,
    ) -> None:
        self.credentials = credentials
        self.api_link = api_link
        self.dispatcher = dispatcher or RequestDispatcher()
        self.nonce_source = nonce_source or NonceSource()
        self.otp_generator = otp_generator or OtpGenerator()

    def __enter__(self) -> PrivateApiClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb
        self.close()

    def close(self) -> None:
        self.dispatcher.close()

    def prepare(
        self, endpoint_path: str, extra_pairs: Iterable[tuple[str, str]] = ()
    ) -> SignedRequest:
        return prepare_private_request(
            self.credentials,
            self.api_link,
            endpoint_path,
            extra_pairs=extra_pairs,
            nonce_source=self.nonce_source,
            otp_generator=self.otp_generator,
        )

    def request(
        self, endpoint_path: str, extra_pairs: Iterable[tuple[str, str]] = ()
    ) -> httpx.Response:
        signed = self.prepare(endpoint_path, extra_pairs)
        logger.debug("private_request_signed", extra={"extra": {"path": endpoint_path}})
        return self.dispatcher.dispatch(
            signed.url, signed.body, signed.api_key, signed.signature
        )


def private_api_request(
    api_key: str,
    api_secret: str,
    otp_secret: str,
    api_link: str,
    endpoint_path: str,
    *,
    dispatcher: RequestDispatcher | None = None,
) -> httpx.Response:
    credentials = Credentials(api_key=api_key, api_secret=api_secret, otp_seed=otp_secret)
    owned = dispatcher is None
    client = PrivateApiClient(credentials, api_link, dispatcher=dispatcher)
    try:
        return client.request(endpoint_path)
    finally:
        if owned:
            client.close()


async def async_private_api_request(
    credentials: Credentials,
    api_link: str,
    endpoint_path: str,
    *,
    dispatcher: AsyncRequestDispatcher,
    extra_pairs: Iterable[tuple[str, str]] = (),
    nonce_source: NonceSource | None = None,
    otp_generator: OtpGenerator | None = None,
) -> httpx.Response:
    signed = prepare_private_request(
        credentials,
        api_link,
        endpoint_path,
        extra_pairs=extra_pairs,
        nonce_source=nonce_source,
        otp_generator=otp_generator,
    )
    return await dispatcher.dispatch(signed.url, signed.body, signed.api_key, signed.signature)
