# taskboard/middleware/compression.py
"""
Response compression for task listings and other JSON payloads.
Brotli is preferred when the client accepts it, gzip otherwise.
"""
import gzip
from typing import Callable, List, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.datastructures import MutableHeaders
from loguru import logger
import brotli

# Statuses that never carry a body
_BODYLESS_STATUSES = {204, 304}


def choose_encoding(accept_encoding: str) -> Optional[str]:
    accept_encoding = accept_encoding.lower()
    if 'br' in accept_encoding:
        return 'br'
    if 'gzip' in accept_encoding:
        return 'gzip'
    return None


class CompressionMiddleware(BaseHTTPMiddleware):
    """
    Compresses response bodies at or above ``minimum_size`` bytes
    """

    def __init__(
            self,
            app,
            minimum_size: int = 1024,
            compression_level: int = 6,
            exclude_paths: Optional[List[str]] = None
    ):
        super().__init__(app)
        self.minimum_size = minimum_size
        self.compression_level = compression_level
        self.exclude_paths = exclude_paths or ['/metrics', '/health']

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exclude_paths:
            return await call_next(request)

        encoding = choose_encoding(request.headers.get('accept-encoding', ''))
        response = await call_next(request)

        if (
            encoding is None
            or response.status_code in _BODYLESS_STATUSES
            or 'content-encoding' in response.headers
        ):
            return response

        content_length = response.headers.get('content-length')
        if content_length and int(content_length) < self.minimum_size:
            return response

        body = b''
        async for chunk in response.body_iterator:
            body += chunk

        headers = MutableHeaders(raw=list(response.headers.raw))
        if len(body) < self.minimum_size:
            return Response(content=body, status_code=response.status_code, headers=dict(headers))

        compressed_body = self.compress(body, encoding)
        headers['content-encoding'] = encoding
        headers['content-length'] = str(len(compressed_body))
        headers.setdefault('vary', 'Accept-Encoding')

        logger.debug(
            f"Compressed {request.url.path}: {len(body)} -> {len(compressed_body)} bytes using {encoding}"
        )

        return Response(content=compressed_body, status_code=response.status_code, headers=dict(headers))

    def compress(self, body: bytes, encoding: str) -> bytes:
        if encoding == 'br':
            return brotli.compress(body, quality=self.compression_level)
        return gzip.compress(body, compresslevel=self.compression_level)
