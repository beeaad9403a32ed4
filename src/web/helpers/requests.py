"""Adapt Starlette requests to the pipeline's RawRequest."""

from fastapi import Request

from leads.models import RawRequest


async def build_raw_request(request: Request) -> RawRequest:
    """Read the body and snapshot headers, query, cookies and client address."""
    body = await request.body()
    return RawRequest.build(
        body=body,
        content_type=request.headers.get("content-type", ""),
        headers=dict(request.headers),
        query=dict(request.query_params),
        cookies=dict(request.cookies),
        client_host=request.client.host if request.client else None,
    )
