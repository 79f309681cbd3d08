"""Tests for the topic status protocol: request bytes, response framing, payload decoding, TCP query."""

import asyncio
import json
import socket
import struct

import pytest

from conftest import sample_payload
from infofetcher.connector.topic import (
    STATUS_REQUEST,
    build_status_request,
    decode_payload,
    encode_status_response,
    parse_endpoint,
    query_server,
    read_status_response,
)
from infofetcher.core.errors import DecodeError, FetchError, ProtocolMismatchError, TransportError

EXPECTED_REQUEST = bytes.fromhex(
    "0083 0019 0000000000 3F7374617475732666 6F726D61743D6A736F6E 00".replace(" ", "")
)


def _reader_with(data: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    if eof:
        reader.feed_eof()
    return reader


class TestStatusRequest:
    def test_request_is_bit_exact(self):
        assert STATUS_REQUEST == EXPECTED_REQUEST
        assert len(STATUS_REQUEST) == 29

    def test_request_payload_and_length_field(self):
        assert STATUS_REQUEST[9:28] == b"?status&format=json"
        (length,) = struct.unpack(">H", STATUS_REQUEST[2:4])
        assert length == 0x19
        assert STATUS_REQUEST[-1] == 0

    def test_build_is_constant(self):
        assert build_status_request() == build_status_request() == STATUS_REQUEST


class TestResponseFraming:
    def test_encode_length_counts_type_and_footer(self):
        frame = encode_status_response(b"{}")
        assert frame[:2] == b"\x00\x83"
        assert struct.unpack(">H", frame[2:4])[0] == 4
        assert frame[4] == 0x06
        assert frame[5:7] == b"{}"
        assert frame[-1] == 0

    @pytest.mark.asyncio
    async def test_read_valid_response(self, payload):
        reader = _reader_with(encode_status_response(json.dumps(payload)))
        record = await read_status_response(reader)
        assert record.identifier == "main"
        assert record.players == 57
        assert record.respawn is False
        assert record.enter is True
        assert record.hub is True
        assert record.bunkered is False
        assert record.interviews is None

    @pytest.mark.asyncio
    async def test_surrounding_whitespace_is_trimmed(self, payload):
        body = "\n  " + json.dumps(payload) + " \r\n"
        reader = _reader_with(encode_status_response(body))
        record = await read_status_response(reader)
        assert record.map_name == "Meta Station"

    @pytest.mark.asyncio
    async def test_invalid_header_fails_before_payload(self, payload):
        frame = b"\x00\x84" + encode_status_response(json.dumps(payload))[2:]
        reader = _reader_with(frame)
        with pytest.raises(ProtocolMismatchError, match="invalid header"):
            await read_status_response(reader)
        # only the two header bytes were consumed
        rest = await reader.read()
        assert rest == frame[2:]

    @pytest.mark.asyncio
    async def test_invalid_type(self, payload):
        frame = bytearray(encode_status_response(json.dumps(payload)))
        frame[4] = 0x2A
        with pytest.raises(ProtocolMismatchError, match="invalid type"):
            await read_status_response(_reader_with(bytes(frame)))

    @pytest.mark.asyncio
    async def test_invalid_footer(self, payload):
        frame = bytearray(encode_status_response(json.dumps(payload)))
        frame[-1] = 0x01
        with pytest.raises(ProtocolMismatchError, match="invalid footer"):
            await read_status_response(_reader_with(bytes(frame)))

    @pytest.mark.asyncio
    async def test_length_below_overhead(self):
        frame = b"\x00\x83" + struct.pack(">HB", 1, 0x06) + b"\x00"
        with pytest.raises(ProtocolMismatchError, match="invalid length"):
            await read_status_response(_reader_with(frame))

    @pytest.mark.asyncio
    async def test_declared_length_longer_than_data_is_transport_error(self, payload):
        frame = encode_status_response(json.dumps(payload))
        truncated = frame[:-20]
        with pytest.raises(TransportError, match="payload"):
            await read_status_response(_reader_with(truncated))

    @pytest.mark.asyncio
    async def test_missing_footer_is_transport_error(self, payload):
        frame = encode_status_response(json.dumps(payload))
        with pytest.raises(TransportError, match="footer"):
            await read_status_response(_reader_with(frame[:-1]))

    @pytest.mark.asyncio
    async def test_empty_response_is_transport_error(self):
        with pytest.raises(TransportError, match="header"):
            await read_status_response(_reader_with(b""))

    @pytest.mark.asyncio
    async def test_first_read_timeout(self):
        reader = _reader_with(b"", eof=False)
        with pytest.raises(TransportError, match="timed out"):
            await read_status_response(reader, first_read_timeout=0.05)


class TestPayloadDecoding:
    def test_invalid_utf8_is_protocol_mismatch(self):
        with pytest.raises(ProtocolMismatchError, match="utf-8"):
            decode_payload(b"{\"version\": \"\xff\xfe\"}")

    def test_malformed_json_is_decode_error(self):
        with pytest.raises(DecodeError, match="malformed json"):
            decode_payload(b"{\"version\": ")

    def test_flag_outside_zero_one_is_decode_error(self):
        body = json.dumps(sample_payload(respawn=2)).encode()
        with pytest.raises(DecodeError, match="respawn"):
            decode_payload(body)

    def test_optional_flag_outside_zero_one_is_decode_error(self):
        body = json.dumps(sample_payload(interviews=7)).encode()
        with pytest.raises(DecodeError, match="interviews"):
            decode_payload(body)

    def test_error_kinds_are_distinct(self):
        assert {TransportError.kind, ProtocolMismatchError.kind, DecodeError.kind} == {
            "transport",
            "protocol",
            "decode",
        }
        for cls in (TransportError, ProtocolMismatchError, DecodeError):
            assert issubclass(cls, FetchError)


class TestParseEndpoint:
    def test_host_port(self):
        assert parse_endpoint("play.example.net:1337") == ("play.example.net", 1337)

    def test_ipv6_brackets(self):
        assert parse_endpoint("[::1]:4000") == ("::1", 4000)

    @pytest.mark.parametrize(
        "bad",
        ["nohost", ":1337", "host:", "host:abc", "host:70000", "a..b:1", "a" * 64 + ".example:1337"],
    )
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_endpoint(bad)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestQueryServer:
    @pytest.mark.asyncio
    async def test_round_trip_over_tcp(self, payload):
        received = []

        async def handle(reader, writer):
            received.append(await reader.readexactly(len(STATUS_REQUEST)))
            writer.write(encode_status_response(json.dumps(payload)))
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        async with server:
            record = await query_server(f"127.0.0.1:{port}")
        assert received == [STATUS_REQUEST]
        assert record.to_wire_dict() == payload

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        port = _free_port()
        with pytest.raises(TransportError):
            await query_server(f"127.0.0.1:{port}", timeout=0.5)

    @pytest.mark.asyncio
    async def test_silent_server_times_out(self):
        release = asyncio.Event()

        async def handle(reader, writer):
            await release.wait()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        async with server:
            try:
                with pytest.raises(TransportError, match="timed out"):
                    await query_server(f"127.0.0.1:{port}", timeout=0.1)
            finally:
                release.set()

    @pytest.mark.asyncio
    async def test_server_closing_early(self):
        async def handle(reader, writer):
            await reader.readexactly(len(STATUS_REQUEST))
            writer.write(b"\x00\x83\x01")
            await writer.drain()
            writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        async with server:
            with pytest.raises(TransportError, match="length"):
                await query_server(f"127.0.0.1:{port}")

    @pytest.mark.asyncio
    async def test_bad_address_is_transport_error(self):
        with pytest.raises(TransportError):
            await query_server("not-an-address")

    @pytest.mark.asyncio
    async def test_host_name_encoding_error_is_transport_error(self, monkeypatch):
        async def bad_name(host, port):
            raise UnicodeError("encoding with 'idna' codec failed (label empty or too long)")

        monkeypatch.setattr(asyncio, "open_connection", bad_name)
        with pytest.raises(TransportError, match="idna"):
            await query_server("play.example.net:1337")

    @pytest.mark.asyncio
    async def test_overlong_host_label_is_transport_error(self):
        with pytest.raises(TransportError, match="invalid host name"):
            await query_server("a" * 64 + ".example:1337")
