"""
End-to-end tests: a real dispatcher, real sockets, real shell commands.
"""

import socket

import pytest

from norman import Client, ClientConfig
from norman.protocol import (
    Packet,
    RequestType,
    Service,
    Status,
    decode_bytes,
)

from conftest import make_dispatcher


def send_raw(server_port: int, response_port: int, raw: bytes) -> Packet:
    """Send raw bytes as a request and decode whatever comes back."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.bind(("127.0.0.1", response_port))
        listener.listen(1)
        listener.settimeout(5.0)

        with socket.create_connection(("127.0.0.1", server_port), timeout=5.0) as sock:
            sock.sendall(raw)

        reply, _ = listener.accept()
        with reply:
            reply.settimeout(5.0)
            data = reply.recv(512)

    return decode_bytes(data)


class TestExchange:
    """Tests for a complete request/response exchange."""

    def test_echo_hello(self, client: Client):
        """Test `echo hello` comes back as a FINE RETURN packet."""
        response = client.run_command("echo hello")

        assert response.meta.req_type is RequestType.RETURN
        assert response.meta.status == Status.FINE
        assert response.payload.data == "hello"
        assert response.header.service is Service.SHELL
        assert response.header.version == "NORMAN/0.1"

    def test_non_shell_service_runs_in_shell(self, client: Client):
        """Test DOCKER requests are executed like SHELL ones."""
        response = client.run_command("echo docker", service=Service.DOCKER)

        assert response.payload.data == "docker"
        assert response.header.service is Service.DOCKER

    def test_sequential_requests(self, client: Client):
        """Test the server keeps answering after each exchange."""
        for word in ("one", "two", "three"):
            assert client.run_command(f"echo {word}").payload.data == word

    def test_binary_output(self, client: Client):
        """Test output that is not UTF-8 still comes back as a RETURN packet."""
        response = client.run_command("printf '\\377ok'")

        assert response.meta.req_type is RequestType.RETURN
        assert response.payload.data == "\ufffdok"

    def test_failed_command(self, client: Client):
        """Test a non-zero exit comes back as an ERROR packet."""
        response = client.run_command("exit 3")

        assert response.meta.req_type is RequestType.ERROR
        assert response.meta.status == Status.ERROR
        assert "status 3" in response.payload.data


class TestMalformedRequests:
    """Tests for frames the dispatcher cannot decode."""

    def test_wrong_field_count(self, running_dispatcher, response_port: int):
        """Test a frame with too few fields gets an ERROR response."""
        response = send_raw(running_dispatcher.port, response_port, b"NORMAN/0.1|true|SHELL")

        assert response.meta.req_type is RequestType.ERROR
        assert response.meta.status == Status.ERROR
        assert response.header.service is Service.UNKNOWN
        assert "expected 11 fields but found 3" in response.payload.data

    def test_oversized_frame(self, running_dispatcher, response_port: int, client: Client):
        """Test a frame over 512 bytes is truncated and answered with ERROR."""
        command = "echo " + "x" * 600
        raw = f"NORMAN/0.1|true|SHELL|REQUEST|200 OK|0|None| |{command}|false|NORMAN/END"

        response = send_raw(running_dispatcher.port, response_port, raw.encode("utf-8"))

        assert response.meta.req_type is RequestType.ERROR

        # Server is still serving
        assert client.run_command("echo alive").payload.data == "alive"


class TestLegacyErrors:
    """Tests for the abort error policy."""

    def test_malformed_frame_is_dropped(self, free_port: int):
        """Test no response is delivered and the server keeps working."""
        server = make_dispatcher(free_port, error_policy="abort")
        server.start()
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
                listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                listener.bind(("127.0.0.1", free_port))
                listener.listen(1)
                listener.settimeout(1.0)

                with socket.create_connection(("127.0.0.1", server.port), timeout=5.0) as sock:
                    sock.sendall(b"garbage")

                with pytest.raises(socket.timeout):
                    listener.accept()

            client = Client(ClientConfig(
                port=server.port,
                response_port=free_port,
                timeout=5.0,
            ))
            assert client.run_command("echo still here").payload.data == "still here"
        finally:
            server.stop()
