"""Tests for the command-line renderers and the kroki fallback."""

import json
import os
import stat
from unittest.mock import MagicMock, patch

import httpx
import pytest

from ..jobs import JOB_RUNNING, JobTable
from ..renderers import (
    RENDERERS,
    D2Renderer,
    GnuplotRenderer,
    MermaidRenderer,
    PlantUMLRenderer,
    create_renderers,
)
from ..renderers.base import diagram_hash, publish_output
from ..renderers.kroki import first_error_line, render_kroki


posix_only = pytest.mark.skipif(os.name != "posix", reason="needs /bin/sh")


def _mock_httpx_client(status_code=200, content=b"", text=""):
    """Create a mock httpx client context manager returning a real response."""
    request = httpx.Request("POST", "https://kroki.io/mermaid/png")
    mock_response = httpx.Response(status_code, content=content or text.encode(),
                                   request=request)
    mock_client = MagicMock()
    mock_client.post.return_value = mock_response
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    return mock_client


@pytest.fixture
def jobs():
    table = MagicMock()
    table.start.return_value = 7
    return table


def _command(jobs):
    return jobs.start.call_args[0][0]


def _is_partial_of(path, output_path):
    stem = output_path[:-len(".png")]
    return path.startswith(stem + ".") and path.endswith(".partial.png")


class TestDiagramHash:
    """Tests for output file naming."""

    def test_stable(self):
        assert diagram_hash("graph TD", {"theme": "dark"}) == \
            diagram_hash("graph TD", {"theme": "dark"})

    def test_options_change_hash(self):
        assert diagram_hash("graph TD", {}) != diagram_hash("graph TD", {"theme": "dark"})

    def test_option_order_ignored(self):
        assert diagram_hash("x", {"a": 1, "b": 2}) == diagram_hash("x", {"b": 2, "a": 1})


class TestRegistry:
    """Tests for the renderer table."""

    def test_ids(self):
        assert set(RENDERERS) == {"mermaid", "plantuml", "d2", "gnuplot"}

    def test_create_renderers_share_job_table(self, jobs, tmp_path):
        renderers = create_renderers(jobs, str(tmp_path), "https://kroki.io")
        assert [r.id for r in renderers] == ["mermaid", "plantuml", "d2", "gnuplot"]
        assert all(r._jobs is jobs for r in renderers)
        assert renderers[0].cache_dir == os.path.join(str(tmp_path), "mermaid")


class TestCommandRenderer:
    """Tests for the shared render flow."""

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_starts_job_and_returns_pending(self, mock_which, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        result = renderer.render("graph TD", {})
        assert result.is_pending
        assert result.job_id == 7
        assert result.file_path.startswith(os.path.join(str(tmp_path), "mermaid"))
        assert result.file_path.endswith(".png")
        input_path = _command(jobs)[_command(jobs).index("-i") + 1]
        with open(input_path) as f:
            assert f.read() == "graph TD"

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_cached_image_is_ready(self, mock_which, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        first = renderer.render("graph TD", {})
        with open(first.file_path, "wb") as f:
            f.write(b"\x89PNG")
        jobs.start.reset_mock()

        second = renderer.render("graph TD", {})
        assert not second.is_pending
        assert second.file_path == first.file_path
        jobs.start.assert_not_called()

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_none_options_dropped(self, mock_which, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        a = renderer.render("graph TD", {"theme": None, "scale": None})
        b = renderer.render("graph TD", {})
        assert a.file_path == b.file_path
        assert "-t" not in _command(jobs)

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_executable_lookup_cached(self, mock_which, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        renderer.render("a", {})
        renderer.render("b", {})
        mock_which.assert_called_once_with("mmdc")

    @patch("diagramview.renderers.base.render_kroki", return_value=True)
    @patch("diagramview.renderers.base.shutil.which", return_value=None)
    def test_kroki_fallback_when_tool_missing(self, mock_which, mock_kroki, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path), kroki_url="https://kroki.io")
        result = renderer.render("graph TD", {"theme": "dark"})
        assert not result.is_pending
        jobs.start.assert_not_called()
        base_url, diagram_type, source, output_path = mock_kroki.call_args[0]
        assert base_url == "https://kroki.io"
        assert diagram_type == "mermaid"
        assert source.startswith("%%{init: {'theme': 'dark'}}%%")
        assert output_path == result.file_path

    @patch("diagramview.renderers.base.render_kroki", return_value=True)
    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_kroki_fallback_when_launch_fails(self, mock_which, mock_kroki, jobs, tmp_path):
        jobs.start.return_value = None
        renderer = MermaidRenderer(jobs, str(tmp_path), kroki_url="https://kroki.io")
        result = renderer.render("graph TD", {})
        assert not result.is_pending
        mock_kroki.assert_called_once()

    @patch("diagramview.renderers.base.shutil.which", return_value=None)
    def test_missing_tool_without_kroki(self, mock_which, jobs, tmp_path, caplog):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        result = renderer.render("graph TD", {})
        renderer.render("graph LR", {})
        assert not result.is_pending
        assert not os.path.exists(result.file_path)
        assert caplog.text.count("mmdc not found") == 1

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_cli_args_string_split(self, mock_which, jobs, tmp_path):
        MermaidRenderer(jobs, str(tmp_path)).render("x", {"cli_args": "--foo bar"})
        assert _command(jobs)[-2:] == ["--foo", "bar"]


class TestPublishOutput:
    """Tests for moving finished renders into the cache."""

    def _launch(self, jobs, tmp_path):
        with patch("diagramview.renderers.base.shutil.which",
                   return_value="/usr/bin/plantuml"):
            result = PlantUMLRenderer(jobs, str(tmp_path)).render("@startuml\n@enduml", {})
        kwargs = jobs.start.call_args[1]
        return result, kwargs["stdout_path"], kwargs["stdin_path"], kwargs["on_exit"]

    def test_success_moves_partial_into_place(self, jobs, tmp_path):
        result, partial, source, on_exit = self._launch(jobs, tmp_path)
        with open(partial, "wb") as f:
            f.write(b"\x89PNG")
        on_exit(0)
        with open(result.file_path, "rb") as f:
            assert f.read() == b"\x89PNG"
        assert not os.path.exists(partial)
        assert not os.path.exists(source)

    @pytest.mark.parametrize("code", [1, -15])
    def test_failed_or_terminated_job_not_cached(self, jobs, tmp_path, code):
        result, partial, source, on_exit = self._launch(jobs, tmp_path)
        with open(partial, "wb") as f:
            f.write(b"half a png")
        on_exit(code)
        assert not os.path.exists(result.file_path)
        assert not os.path.exists(partial)
        assert not os.path.exists(source)

    def test_empty_output_not_cached(self, jobs, tmp_path):
        result, partial, _, on_exit = self._launch(jobs, tmp_path)
        on_exit(0)
        assert not os.path.exists(result.file_path)
        assert not os.path.exists(partial)

    def test_launch_failure_leaves_no_files(self, jobs, tmp_path):
        jobs.start.return_value = None
        self._launch(jobs, tmp_path)
        assert os.listdir(tmp_path / "plantuml") == []

    def test_concurrent_renders_use_separate_files(self, jobs, tmp_path):
        first = self._launch(jobs, tmp_path)
        second = self._launch(jobs, tmp_path)
        assert first[0].file_path == second[0].file_path
        assert first[1] != second[1]
        assert first[2] != second[2]

    def test_publish_output_directly(self, tmp_path):
        partial = tmp_path / "a.x.partial.png"
        partial.write_bytes(b"png")
        source = tmp_path / "a.x.partial.puml"
        source.write_text("@startuml")
        publish_output(str(partial), str(tmp_path / "a.png"), str(source), 0)
        assert (tmp_path / "a.png").read_bytes() == b"png"
        assert sorted(os.listdir(tmp_path)) == ["a.png"]


@posix_only
class TestRunningJobOutput:
    """Tests with a real tool process writing its output over time."""

    def _tool(self, tmp_path, body):
        path = tmp_path / "plantuml"
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IEXEC)
        return str(path)

    def test_running_job_output_is_not_served(self, tmp_path):
        tool = self._tool(tmp_path, "printf PARTIAL\nsleep 5\nprintf REST\n")
        table = JobTable()
        with patch("diagramview.renderers.base.shutil.which", return_value=tool):
            renderer = PlantUMLRenderer(table, str(tmp_path / "cache"))
            first = renderer.render("@startuml\nA -> B\n@enduml", {})
            assert table.wait([first.job_id], timeout=0.2) == [JOB_RUNNING]

            second = renderer.render("@startuml\nA -> B\n@enduml", {})
        assert second.is_pending
        assert second.job_id != first.job_id
        assert not os.path.exists(first.file_path)

        table.terminate_all()
        assert not os.path.exists(first.file_path)
        assert os.listdir(renderer.cache_dir) == []

    def test_finished_job_output_is_cached(self, tmp_path):
        tool = self._tool(tmp_path, "cat\n")
        table = JobTable()
        with patch("diagramview.renderers.base.shutil.which", return_value=tool):
            renderer = PlantUMLRenderer(table, str(tmp_path / "cache"))
            first = renderer.render("@startuml\nA -> B\n@enduml", {})
            assert table.wait([first.job_id], timeout=5) == [0]
            second = renderer.render("@startuml\nA -> B\n@enduml", {})
        assert not second.is_pending
        with open(second.file_path) as f:
            assert f.read() == "@startuml\nA -> B\n@enduml"


class TestMermaidRenderer:
    """Tests for the mmdc command line."""

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_command(self, mock_which, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        result = renderer.render("graph TD", {
            "background": "transparent", "theme": "dark", "scale": 2,
            "width": 800, "height": 600, "cli_args": ["--pdfFit"],
        })
        cmd = _command(jobs)
        assert cmd[0] == "/usr/bin/mmdc"
        assert _is_partial_of(cmd[cmd.index("-o") + 1], result.file_path)
        assert cmd[cmd.index("-i") + 1].endswith(".mmd")
        assert "--quiet" in cmd
        for flag, value in (("-b", "transparent"), ("-t", "dark"), ("-s", "2"),
                            ("-w", "800"), ("-H", "600")):
            assert cmd[cmd.index(flag) + 1] == value
        assert cmd[-1] == "--pdfFit"

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/mmdc")
    def test_puppeteer_config_written(self, mock_which, jobs, tmp_path):
        MermaidRenderer(jobs, str(tmp_path)).render("graph TD", {})
        config_path = _command(jobs)[_command(jobs).index("-p") + 1]
        with open(config_path) as f:
            assert "--no-sandbox" in json.load(f)["args"]

    def test_kroki_source_keeps_existing_directive(self, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        source = "%%{init: {'theme': 'forest'}}%%\ngraph TD"
        assert renderer._kroki_source(source, {"theme": "dark"}) == source

    def test_kroki_source_default_theme_untouched(self, jobs, tmp_path):
        renderer = MermaidRenderer(jobs, str(tmp_path))
        assert renderer._kroki_source("graph TD", {"theme": "default"}) == "graph TD"


class TestPlantUMLRenderer:
    """Tests for the plantuml command line."""

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/plantuml")
    def test_pipes_source_and_image(self, mock_which, jobs, tmp_path):
        result = PlantUMLRenderer(jobs, str(tmp_path)).render(
            "@startuml\nA -> B\n@enduml", {"charset": "UTF-8"})
        cmd = _command(jobs)
        assert cmd == ["/usr/bin/plantuml", "-tpng", "-pipe", "-charset", "UTF-8"]
        kwargs = jobs.start.call_args[1]
        assert kwargs["stdin_path"].endswith(".puml")
        assert _is_partial_of(kwargs["stdout_path"], result.file_path)
        assert callable(kwargs["on_exit"])


class TestD2Renderer:
    """Tests for the d2 command line."""

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/d2")
    def test_command(self, mock_which, jobs, tmp_path):
        result = D2Renderer(jobs, str(tmp_path)).render("a -> b", {
            "theme_id": 200, "dark_theme_id": 201, "scale": 1.5,
            "layout": "elk", "sketch": True,
        })
        cmd = _command(jobs)
        assert cmd[:6] == ["/usr/bin/d2", "--theme=200", "--dark-theme=201",
                           "--scale=1.5", "--layout=elk", "--sketch"]
        assert cmd[-2].endswith(".d2")
        assert _is_partial_of(cmd[-1], result.file_path)

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/d2")
    def test_sketch_false_omitted(self, mock_which, jobs, tmp_path):
        D2Renderer(jobs, str(tmp_path)).render("a -> b", {"sketch": False})
        assert "--sketch" not in _command(jobs)


class TestGnuplotRenderer:
    """Tests for the gnuplot script wrapper."""

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/gnuplot")
    def test_script_sets_terminal_and_output(self, mock_which, jobs, tmp_path):
        result = GnuplotRenderer(jobs, str(tmp_path)).render(
            "plot sin(x)", {"size": "800,600", "font": "Arial,10"})
        cmd = _command(jobs)
        assert cmd[0] == "/usr/bin/gnuplot"
        with open(cmd[-1]) as f:
            script = f.read().splitlines()
        assert script[0] == 'set terminal pngcairo enhanced size 800,600 font "Arial,10"'
        output = script[1][len("set output \""):-1]
        assert _is_partial_of(output, result.file_path)
        assert "plot sin(x)" in script
        assert script[-1] == "unset output"

    @patch("diagramview.renderers.base.shutil.which", return_value="/usr/bin/gnuplot")
    def test_dark_theme(self, mock_which, jobs, tmp_path):
        GnuplotRenderer(jobs, str(tmp_path)).render("plot x", {"theme": "dark"})
        with open(_command(jobs)[-1]) as f:
            script = f.read()
        assert 'background rgb "#1e1e2e"' in script
        assert 'set border lc rgb "#cdd6f4"' in script

    @patch("diagramview.renderers.base.render_kroki")
    @patch("diagramview.renderers.base.shutil.which", return_value=None)
    def test_no_kroki_support(self, mock_which, mock_kroki, jobs, tmp_path):
        GnuplotRenderer(jobs, str(tmp_path), kroki_url="https://kroki.io").render("plot x", {})
        mock_kroki.assert_not_called()


class TestRenderKroki:
    """Tests for HTTP rendering through kroki."""

    @patch("diagramview.renderers.kroki.httpx.Client")
    def test_writes_png_on_success(self, mock_client_cls, tmp_path):
        client = _mock_httpx_client(status_code=200, content=b"\x89PNG data")
        mock_client_cls.return_value = client
        out = tmp_path / "out.png"

        assert render_kroki("https://kroki.io", "d2", "a -> b", str(out)) is True
        assert out.read_bytes() == b"\x89PNG data"
        url = client.post.call_args[0][0]
        assert url == "https://kroki.io/d2/png"
        assert client.post.call_args[1]["content"] == b"a -> b"

    @patch("diagramview.renderers.kroki.httpx.Client")
    def test_network_error(self, mock_client_cls, tmp_path):
        client = _mock_httpx_client()
        client.post.side_effect = httpx.ConnectError("refused")
        mock_client_cls.return_value = client
        out = tmp_path / "out.png"
        assert render_kroki("https://kroki.io", "mermaid", "graph TD", str(out)) is False
        assert not out.exists()

    @patch("diagramview.renderers.kroki.httpx.Client")
    def test_syntax_error(self, mock_client_cls, tmp_path, caplog):
        mock_client_cls.return_value = _mock_httpx_client(
            status_code=400, text="Error 400: SyntaxError: Parse error on line 3")
        with caplog.at_level("DEBUG", logger="diagramview.renderers.kroki"):
            ok = render_kroki("https://kroki.io", "mermaid", "bad", str(tmp_path / "o.png"))
        assert ok is False
        assert "SyntaxError: Parse error on line 3" in caplog.text

    @patch("diagramview.renderers.kroki.httpx.Client")
    def test_server_error(self, mock_client_cls, tmp_path):
        mock_client_cls.return_value = _mock_httpx_client(status_code=503)
        assert render_kroki("https://kroki.io", "mermaid", "x", str(tmp_path / "o.png")) is False


class TestFirstErrorLine:
    """Tests for reducing kroki error bodies to their headline."""

    def test_strips_error_prefix(self):
        assert first_error_line("Error 400: SyntaxError: bad") == "SyntaxError: bad"

    def test_keeps_only_headline(self):
        body = "Error 400: Parse error\n    at Parser.parse (x.js:1)\n    at y"
        assert first_error_line(body) == "Parse error"

    def test_skips_leading_blank_lines(self):
        assert first_error_line("\n\nboom: details") == "boom: details"

    def test_empty(self):
        assert first_error_line("") is None
