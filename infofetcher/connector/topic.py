"""Topic status protocol: one fixed request, one framed JSON response per TCP connection.

Request (29 bytes):  00 83 | 00 19 | 00 x5 | "?status&format=json" | 00
Response:            00 83 | length (u16 BE) | 06 | length-2 bytes UTF-8 JSON | 00

The length field covers the type byte and the footer in addition to the body, hence the
body is length - 2 bytes.
"""

import asyncio
import json
import logging
import struct
from typing import Optional, Tuple, Union

from infofetcher.core.errors import DecodeError, ProtocolMismatchError, TransportError
from infofetcher.core.record import ServerRecord

logger = logging.getLogger(__name__)

HEADER = b"\x00\x83"
RESPONSE_TYPE_JSON = 0x06
FOOTER = 0x00
STATUS_QUERY = b"?status&format=json"
_PADDING = 5

# Connect+write and the first read must each finish within this many seconds.
DEFAULT_TIMEOUT = 0.75
# Upper bound for the rest of the response once the header has arrived.
DEFAULT_READ_TIMEOUT = 5.0


def build_status_request(query: bytes = STATUS_QUERY) -> bytes:
    """Frame a topic query: header, length (padding + query), padding, query, footer."""
    length = _PADDING + len(query) + 1
    return HEADER + struct.pack(">H", length) + bytes(_PADDING) + query + bytes((FOOTER,))


STATUS_REQUEST = build_status_request()


def encode_status_response(payload: Union[bytes, str]) -> bytes:
    """Frame a JSON payload the way a server answers a status query."""
    body = payload.encode("utf-8") if isinstance(payload, str) else payload
    if len(body) + 2 > 0xFFFF:
        raise ValueError(f"payload too large for u16 length: {len(body)} bytes")
    return HEADER + struct.pack(">HB", len(body) + 2, RESPONSE_TYPE_JSON) + body + bytes((FOOTER,))


def parse_endpoint(endpoint: str) -> Tuple[str, int]:
    """Split 'host:port' (or '[v6]:port'). Raises ValueError on a bad address."""
    host, sep, port_s = endpoint.strip().rpartition(":")
    if not sep or not host:
        raise ValueError(f"server address must be host:port, got {endpoint!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        host.encode("idna")
    except UnicodeError:
        raise ValueError(f"invalid host name in server address {endpoint!r}") from None
    try:
        port = int(port_s)
    except ValueError:
        raise ValueError(f"invalid port in server address {endpoint!r}") from None
    if not 0 < port < 65536:
        raise ValueError(f"port out of range in server address {endpoint!r}")
    return host, port


async def _read_exactly(reader: asyncio.StreamReader, n: int, what: str) -> bytes:
    try:
        return await reader.readexactly(n)
    except asyncio.IncompleteReadError as e:
        raise TransportError(
            f"connection closed while reading {what} ({len(e.partial)} of {n} bytes)"
        ) from e
    except (ConnectionError, OSError) as e:
        raise TransportError(f"read {what} failed: {e}") from e


def decode_payload(body: bytes) -> ServerRecord:
    """UTF-8 decode, trim, JSON parse and validate a response body."""
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ProtocolMismatchError(f"invalid utf-8 payload: {e}") from e
    try:
        data = json.loads(text.strip())
    except json.JSONDecodeError as e:
        raise DecodeError(f"malformed json: {e}") from e
    return ServerRecord.from_dict(data)


async def read_status_response(
    reader: asyncio.StreamReader,
    first_read_timeout: Optional[float] = None,
) -> ServerRecord:
    """Read one framed response from reader and decode it.

    Markers are checked as soon as they are read, so a bad header fails before any payload
    bytes are consumed.
    """
    try:
        header = await asyncio.wait_for(_read_exactly(reader, 2, "header"), first_read_timeout)
    except asyncio.TimeoutError as e:
        raise TransportError(f"timed out waiting for response after {first_read_timeout}s") from e
    if header != HEADER:
        raise ProtocolMismatchError(f"invalid header {header.hex()}")

    (length,) = struct.unpack(">H", await _read_exactly(reader, 2, "length"))

    (resp_type,) = await _read_exactly(reader, 1, "type")
    if resp_type != RESPONSE_TYPE_JSON:
        raise ProtocolMismatchError(f"invalid type 0x{resp_type:02x}")

    if length < 2:
        raise ProtocolMismatchError(f"invalid length {length}")
    body = await _read_exactly(reader, length - 2, "payload")

    (footer,) = await _read_exactly(reader, 1, "footer")
    if footer != FOOTER:
        raise ProtocolMismatchError(f"invalid footer 0x{footer:02x}")

    return decode_payload(body)


async def query_server(
    endpoint: str,
    timeout: float = DEFAULT_TIMEOUT,
    read_timeout: float = DEFAULT_READ_TIMEOUT,
) -> ServerRecord:
    """Open a connection to endpoint, send the status request and decode the answer.

    Raises TransportError, ProtocolMismatchError or DecodeError. The connection is always
    closed before returning.
    """
    try:
        host, port = parse_endpoint(endpoint)
    except ValueError as e:
        raise TransportError(str(e)) from e

    writer: Optional[asyncio.StreamWriter] = None
    try:
        try:
            reader, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout)
            writer.write(STATUS_REQUEST)
            await asyncio.wait_for(writer.drain(), timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"timed out connecting/sending after {timeout}s") from e
        except (ConnectionError, OSError, UnicodeError) as e:
            raise TransportError(f"connect to {endpoint} failed: {e}") from e

        try:
            return await asyncio.wait_for(
                read_status_response(reader, first_read_timeout=timeout),
                read_timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"response not complete after {read_timeout}s") from e
    finally:
        if writer is not None:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError) as e:
                logger.debug("Closing connection to %s: %s", endpoint, e)
