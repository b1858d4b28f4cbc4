"""
Unit tests for the command line entry point.
"""

from pathlib import Path

import pytest

from svgserve import __main__ as cli
from svgserve import __version__


class FakeServer:
    """Stands in for SVGServer so main() returns immediately."""

    instances = []

    def __init__(self, config):
        self.config = config
        self.ran = False
        FakeServer.instances.append(self)

    def run(self):
        self.ran = True


class UnbindableServer(FakeServer):
    def run(self):
        raise OSError(98, "Address already in use")


@pytest.fixture
def fake_server(monkeypatch):
    """Replace SVGServer in the CLI module and clear the environment."""
    for name in ["SVGSERVE_BIND", "SVGSERVE_PORT", "SVGSERVE_INDEX",
                 "SVGSERVE_ROOT", "SVGSERVE_WORKERS", "SVGSERVE_LOG_LEVEL"]:
        monkeypatch.delenv(name, raising=False)

    FakeServer.instances = []
    monkeypatch.setattr(cli, "SVGServer", FakeServer)
    return FakeServer


class TestMain:
    """Tests for main()."""

    def test_runs_with_flags(self, fake_server, svg_root: Path):
        """Test that flags reach the configuration."""
        code = cli.main(["-q", "-b", "0.0.0.0", "-p", "8080", "-i", "/gallery", str(svg_root)])

        assert code == 0
        [server] = fake_server.instances
        assert server.ran
        assert server.config.bind_address == "0.0.0.0"
        assert server.config.port == 8080
        assert server.config.index_route == "/gallery"
        assert server.config.root_dir == svg_root.resolve()

    def test_defaults(self, fake_server, svg_root: Path, monkeypatch):
        """Test that no arguments means the current directory on 127.0.0.1:5000."""
        monkeypatch.chdir(svg_root)

        assert cli.main(["-q"]) == 0

        config = fake_server.instances[0].config
        assert config.bind_address == "127.0.0.1"
        assert config.port == 5000
        assert config.index_route == "/home"
        assert config.root_dir == svg_root.resolve()

    def test_flags_beat_environment(self, fake_server, svg_root: Path, monkeypatch):
        """Test flag > environment precedence."""
        monkeypatch.setenv("SVGSERVE_PORT", "7000")

        cli.main(["-q", "-p", "8000", str(svg_root)])

        assert fake_server.instances[0].config.port == 8000

    def test_environment_used_when_flag_missing(self, fake_server, svg_root: Path, monkeypatch):
        """Test that SVGSERVE_* fills in unset flags."""
        monkeypatch.setenv("SVGSERVE_PORT", "7000")

        cli.main(["-q", str(svg_root)])

        assert fake_server.instances[0].config.port == 7000

    def test_workers(self, fake_server, svg_root: Path):
        """Test that --workers sets the pool bounds."""
        cli.main(["-q", "-w", "3", str(svg_root)])

        config = fake_server.instances[0].config
        assert config.min_workers == 3
        assert config.max_workers == 6

    def test_log_options(self, fake_server, svg_root: Path):
        """Test --log-level and --log-format."""
        cli.main(["-q", "-l", "debug", "--log-format", "json", str(svg_root)])

        config = fake_server.instances[0].config
        assert config.log_level == "DEBUG"
        assert config.log_format == "json"

    def test_prints_guide(self, fake_server, svg_root: Path, capsys):
        """Test that the usage guide is printed at startup."""
        cli.main([str(svg_root)])

        out = capsys.readouterr().out
        assert f"svgserve {__version__}" in out
        assert "Ctrl+C" in out

    def test_quiet_suppresses_guide(self, fake_server, svg_root: Path, capsys):
        """Test --quiet."""
        cli.main(["-q", str(svg_root)])

        assert capsys.readouterr().out == ""


class TestErrors:
    """Tests for failing startups."""

    @pytest.mark.parametrize("port", ["0", "70000"])
    def test_invalid_port(self, fake_server, svg_root: Path, capsys, port: str):
        """Test that an out-of-range port exits 1 before serving."""
        code = cli.main(["-q", "-p", port, str(svg_root)])

        assert code == 1
        assert fake_server.instances == []
        assert capsys.readouterr().err.startswith("Error: ")

    def test_missing_root(self, fake_server, tmp_path: Path, capsys):
        """Test that a missing directory exits 1."""
        code = cli.main(["-q", str(tmp_path / "nope")])

        assert code == 1
        assert "does not exist" in capsys.readouterr().err

    def test_invalid_bind(self, fake_server, svg_root: Path):
        """Test that a host name is not accepted as a bind address."""
        assert cli.main(["-q", "-b", "localhost", str(svg_root)]) == 1

    def test_invalid_index(self, fake_server, svg_root: Path):
        """Test that a relative index route is rejected."""
        assert cli.main(["-q", "-i", "home", str(svg_root)]) == 1

    def test_bind_failure(self, fake_server, monkeypatch, svg_root: Path, capsys):
        """Test that a port already in use exits 1 with a message."""
        monkeypatch.setattr(cli, "SVGServer", UnbindableServer)

        code = cli.main(["-q", "-p", "8080", str(svg_root)])

        assert code == 1
        assert "could not listen on 127.0.0.1:8080" in capsys.readouterr().err

    def test_non_numeric_port(self, fake_server, svg_root: Path):
        """Test that argparse rejects a non-integer port with exit code 2."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-q", "-p", "http", str(svg_root)])

        assert exc_info.value.code == 2

    def test_version(self, capsys):
        """Test --version."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == f"svgserve {__version__}"
