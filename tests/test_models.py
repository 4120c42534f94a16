"""
Tests for the data records.
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from proxykit.models import Circuit, Node, Status, StatusInfo
from tests.conftest import CIRCUIT_PAYLOAD, STARTED_PAYLOAD


class TestStatusInfo:
    """Tests for StatusInfo."""

    def test_parses_wire_keys(self):
        """Kebab-case wire keys map to the snake_case fields."""
        info = StatusInfo.model_validate({**STARTED_PAYLOAD, "onion-only": True})

        assert info.status == Status.STARTED
        assert info.onion_only is True
        assert info.bypass_port == 9050
        assert info.build == "182"

    def test_optional_fields_default(self):
        """Only the status is required."""
        info = StatusInfo.model_validate({"status": "starting"})

        assert info.name is None
        assert info.onion_only is False
        assert info.bypass_port is None

    def test_synthesize(self):
        """Synthesized placeholders carry nothing but the status."""
        assert StatusInfo.synthesize(Status.STOPPED) == StatusInfo(status=Status.STOPPED)

    @pytest.mark.parametrize("status, onion_only, expected", [
        (Status.STOPPED, False, False),
        (Status.STOPPED, True, False),
        (Status.STARTING, False, True),
        (Status.STARTED, False, True),
        (Status.STARTED, True, False),
    ])
    def test_needs_proxy_configured_to_bypass(self, status, onion_only, expected):
        """Only a running proxy outside onion-only mode needs the bypass port."""
        info = StatusInfo(status=status, onion_only=onion_only)
        assert info.needs_proxy_configured_to_bypass is expected

    def test_is_immutable(self):
        """StatusInfo can't be changed after construction."""
        info = StatusInfo.synthesize(Status.STARTED)
        with pytest.raises(ValidationError):
            info.status = Status.STOPPED

    def test_rejects_unknown_status(self):
        with pytest.raises(ValidationError):
            StatusInfo.model_validate({"status": "paused"})

    def test_rejects_invalid_port(self):
        with pytest.raises(ValidationError):
            StatusInfo.model_validate({"status": "started", "bypass-port": 70000})

    def test_str(self):
        """The string form lists every field."""
        assert str(StatusInfo.synthesize(Status.STOPPED)) == (
            "[StatusInfo status=stopped, name=(none), version=(none), build=(none), "
            "onion_only=False, bypass_port=(none)]"
        )


class TestCircuit:
    """Tests for Circuit and Node."""

    def test_parses_camel_case(self):
        circuit = Circuit.model_validate(CIRCUIT_PAYLOAD)

        assert circuit.circuit_id == "12"
        assert circuit.build_flags == ["NEED_CAPACITY", "IS_INTERNAL"]
        assert circuit.socks_username == "user"
        assert circuit.nodes[1] == Node(
            fingerprint="D4E5F6",
            nick_name="exit1",
            ipv6_address="2001:db8::7",
            country_code="nl",
            localized_country_name="Netherlands",
        )

    def test_time_created_is_epoch_millis(self):
        """Small values are still milliseconds."""
        circuit = Circuit.model_validate({"timeCreated": 1500})
        assert circuit.time_created == datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=timezone.utc)

    def test_missing_and_null_lists(self):
        """Absent or null lists become empty."""
        assert Circuit.model_validate({}).nodes == []
        assert Circuit.model_validate({"nodes": None, "buildFlags": None}).build_flags == []

    def test_hidden_service_fields(self):
        circuit = Circuit.model_validate({"purpose": "HS_CLIENT_REND", "hsState": "HSCR_JOINED", "rendQuery": "abc"})
        assert circuit.hs_state == "HSCR_JOINED"
        assert circuit.rend_query == "abc"
