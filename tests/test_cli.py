"""
Tests for the command line front end and logging setup.
"""

import logging

import pytest
import jax

jax.config.update("jax_enable_x64", True)

from spinjax.__main__ import build_parser, main
from spinjax.core.logs import configure_logging


class TestCommandLine:
    """python -m spinjax."""

    def test_list_presets(self, capsys):
        assert main(["--list"]) == 0
        out = capsys.readouterr().out
        assert "ks" in out
        assert "gs3" in out

    def test_run_preset(self, capsys):
        code = main(["ks", "--tspan", "0", "0.2", "--dt", "0.1", "--N", "64"])
        out = capsys.readouterr().out
        assert code == 0
        assert "Status:      completed" in out
        assert "Grid:        N=64" in out

    def test_unknown_preset(self, capsys):
        assert main(["heat", "--dt", "0.1", "--N", "64"]) == 1
        assert "InvalidOperatorError" in capsys.readouterr().err

    def test_missing_preset_name(self):
        with pytest.raises(SystemExit):
            main([])

    def test_scheme_choices(self):
        args = build_parser().parse_args(["ks", "--scheme", "krogstad", "--tspan", "0", "1", "2"])
        assert args.scheme == "krogstad"
        assert args.tspan == [0.0, 1.0, 2.0]
        with pytest.raises(SystemExit):
            build_parser().parse_args(["ks", "--scheme", "rk4"])


class TestLogging:
    """Console handler setup."""

    def test_single_console_handler(self):
        logger = logging.getLogger("spinjax")
        configure_logging("DEBUG")
        configure_logging(logging.INFO)
        handlers = [h for h in logger.handlers if getattr(h, "_spinjax_console", False)]
        assert len(handlers) == 1
        assert logger.level == logging.INFO

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("LOUD")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
