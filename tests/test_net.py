"""Tests for the /proc/net address codec and state mapper."""

import pytest

from conn_exporter.errors import (
    DecodeError, InvalidAddressLength, InvalidHex, MalformedAddress, UnsupportedAddressFamily,
)
from conn_exporter.utils.net import (
    TCP_STATES, decode_address, encode_address, is_local_ip, is_loopback, tcp_state,
)


class TestDecodeAddress:
    def test_loopback_ssh(self):
        assert decode_address("0100007F:0016") == ("127.0.0.1", "22")

    def test_wildcard(self):
        assert decode_address("00000000:0000") == ("0.0.0.0", "0")

    def test_byte_order_is_reversed(self):
        assert decode_address("0500000A:1F90") == ("10.0.0.5", "8080")

    def test_lowercase_hex(self):
        assert decode_address("0164a8c0:01bb") == ("192.168.100.1", "443")

    @pytest.mark.parametrize("field", ["0100007F:0016", "0500000A:1F90", "FFFFFFFF:FFFF", "0164A8C0:0035"])
    def test_reencoding_restores_hex(self, field):
        ip, port = decode_address(field)
        assert encode_address(ip, port) == field

    def test_missing_port(self):
        with pytest.raises(MalformedAddress):
            decode_address("0100007F")

    def test_too_many_parts(self):
        with pytest.raises(MalformedAddress):
            decode_address("0100007F:0016:01")

    def test_non_hex_address(self):
        with pytest.raises(InvalidHex):
            decode_address("0100007G:0016")

    def test_non_hex_port(self):
        with pytest.raises(InvalidHex):
            decode_address("0100007F:00ZZ")

    def test_prefixed_port_rejected(self):
        with pytest.raises(InvalidHex):
            decode_address("0100007F:0x16")

    def test_ipv6_rejected_explicitly(self):
        with pytest.raises(UnsupportedAddressFamily):
            decode_address("00000000000000000000000001000000:0016")

    def test_wrong_byte_count(self):
        with pytest.raises(InvalidAddressLength):
            decode_address("01000000007F:0016")

    def test_odd_digit_count(self):
        with pytest.raises(InvalidHex):
            decode_address("100007F:0016")

    def test_all_failures_are_decode_errors(self):
        for bad in ("x", "zz:00", "0000:0016", "00000000000000000000000000000000:0000"):
            with pytest.raises(DecodeError):
                decode_address(bad)


class TestTcpState:
    def test_listen(self):
        assert tcp_state("0A") == "LISTEN"
        assert tcp_state("0a") == "LISTEN"

    def test_all_defined_codes(self):
        assert tcp_state("01") == "ESTABLISHED"
        assert tcp_state("06") == "TIME_WAIT"
        assert tcp_state("0B") == "CLOSING"
        assert len(TCP_STATES) == 11

    @pytest.mark.parametrize("code", ["00", "0C", "FF", "", "zz"])
    def test_unknown_codes(self, code):
        assert tcp_state(code) == "UNKNOWN"


class TestAddressClasses:
    def test_loopback(self):
        assert is_loopback("127.0.0.1")
        assert is_loopback("127.1.2.3")
        assert not is_loopback("10.0.0.1")
        assert not is_loopback("garbage")

    def test_local(self):
        for ip in ("0.0.0.0", "10.1.2.3", "172.20.0.1", "192.168.1.1", "169.254.0.9", "127.0.0.1"):
            assert is_local_ip(ip), ip
        for ip in ("8.8.8.8", "172.32.0.1", "1.1.1.1", "not-an-ip"):
            assert not is_local_ip(ip), ip
