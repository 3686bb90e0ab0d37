"""Smoke tests for the public package surface."""

import importlib

import gpsd_client
from gpsd_client import protocol
from gpsd_client.protocol.messages import GpsdMessage, GpsdReport, chain_of


class TestPublicApi:
    """Test that the package imports and exports what it declares."""

    def test_import_builds_catalog(self):
        assert chain_of(GpsdReport) == (GpsdReport, GpsdMessage)

    def test_all_names_resolve(self):
        for module in (gpsd_client, protocol):
            for name in module.__all__:
                assert hasattr(module, name), f"{module.__name__}.{name}"

    def test_protocol_models_reexported_at_top_level(self):
        """Every model and enum of the protocol package is importable from gpsd_client."""
        functions = {
            "decode",
            "encode",
            "split_lines",
            "chain_of",
            "message_types",
            "schema_for",
            "tag_of",
        }
        missing = set(protocol.__all__) - functions - set(gpsd_client.__all__)

        assert missing == set()
        assert gpsd_client.DeviceParity is protocol.DeviceParity
        assert gpsd_client.ClockReport is protocol.ClockReport

    def test_cli_module_imports(self):
        cli = importlib.import_module("gpsd_client.cli")
        assert callable(cli.main)
