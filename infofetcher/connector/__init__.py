"""Status protocol client: request framing, response deframing and record decoding."""

from infofetcher.core.errors import DecodeError, FetchError, ProtocolMismatchError, TransportError
from infofetcher.connector.topic import (
    STATUS_REQUEST,
    build_status_request,
    encode_status_response,
    parse_endpoint,
    query_server,
    read_status_response,
)

__all__ = [
    "FetchError",
    "TransportError",
    "ProtocolMismatchError",
    "DecodeError",
    "STATUS_REQUEST",
    "build_status_request",
    "encode_status_response",
    "parse_endpoint",
    "query_server",
    "read_status_response",
]
