"""Tests for article fetching and webpage rendering."""

import io
import sys
import textwrap
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import FakeResponse
from reader_printer.exceptions import ConversionFailed
from reader_printer.processors import ArticleConverter, PercollateRunner, is_pdf


class FakeProcess:
    def __init__(self, lines, returncode, on_wait=None, stdout=None):
        self.stdout = stdout if stdout is not None else io.StringIO("".join(lines))
        self.returncode = returncode
        self.on_wait = on_wait
        self.waited = False
        self.killed = False

    def wait(self):
        if self.on_wait:
            self.on_wait()
        self.waited = True
        return self.returncode

    def poll(self):
        return self.returncode if self.waited else None

    def kill(self):
        self.killed = True


class UndecodableStdout(io.StringIO):
    def __iter__(self):
        raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "invalid start byte")


def make_converter(response, renderer=None):
    session = MagicMock()
    session.headers = {}
    if isinstance(response, Exception):
        session.get.side_effect = response
    else:
        session.get.return_value = response
    return ArticleConverter(renderer=renderer or MagicMock(), session=session)


@pytest.mark.parametrize("content_type,expected", [
    ("application/pdf", True),
    ("application/PDF; qs=0.001", True),
    ("text/html; charset=utf-8", False),
    ("", False),
    (None, False),
])
def test_is_pdf(content_type, expected):
    assert is_pdf(content_type) is expected


def test_resolve_returns_body_for_pdf():
    response = FakeResponse(200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.5")
    converter = make_converter(response)

    assert converter.resolve("https://example.com/a.pdf") == ("application/pdf", b"%PDF-1.5")
    assert response.closed


def test_resolve_returns_no_body_for_webpage():
    converter = make_converter(FakeResponse(200, headers={"content-type": "text/html"}, content=b"<html>"))

    assert converter.resolve("https://example.com/post") == ("text/html", None)


def test_resolve_without_content_type_is_treated_as_webpage():
    converter = make_converter(FakeResponse(200))

    assert converter.resolve("https://example.com/post") == ("", None)


def test_resolve_http_error_is_conversion_failed():
    converter = make_converter(FakeResponse(404))

    with pytest.raises(ConversionFailed):
        converter.resolve("https://example.com/missing")


def test_resolve_transport_error_is_conversion_failed():
    converter = make_converter(requests.exceptions.Timeout("slow"))

    with pytest.raises(ConversionFailed):
        converter.resolve("https://example.com/slow")


def test_convert_renders_webpages(tmp_path):
    renderer = MagicMock()
    converter = make_converter(FakeResponse(200, headers={"content-type": "text/html"}), renderer)
    target = tmp_path / "out.pdf"

    content_type = converter.convert("https://example.com/post", target)

    assert content_type == "text/html"
    renderer.render.assert_called_once_with("https://example.com/post", target)


def test_convert_writes_pdf_body(tmp_path):
    renderer = MagicMock()
    converter = make_converter(
        FakeResponse(200, headers={"content-type": "application/pdf"}, content=b"%PDF-1.5"), renderer)
    target = tmp_path / "out.pdf"

    converter.convert("https://example.com/a.pdf", target)

    assert target.read_bytes() == b"%PDF-1.5"
    renderer.render.assert_not_called()


def test_empty_pdf_body_is_conversion_failed(tmp_path):
    converter = make_converter(FakeResponse(200, headers={"content-type": "application/pdf"}, content=b""))

    with pytest.raises(ConversionFailed):
        converter.convert("https://example.com/a.pdf", tmp_path / "out.pdf")


def test_renderer_command_line(tmp_path):
    runner = PercollateRunner(command=["npx", "percollate"], page_size="A4")

    assert runner.build_command("https://example.com/post", tmp_path / "out.pdf") == [
        "npx", "percollate", "pdf", "--css", "@page { size: A4 }",
        "--output", str(tmp_path / "out.pdf"), "https://example.com/post",
    ]


def test_renderer_defaults_come_from_config(isolated_config):
    isolated_config.set("renderer.page_size", "legal")

    runner = PercollateRunner()

    assert runner.command == ["percollate"]
    assert runner.page_size == "legal"


@patch("reader_printer.processors.percollate_runner.subprocess.Popen")
def test_renderer_success(mock_popen, tmp_path):
    target = tmp_path / "out.pdf"
    mock_popen.return_value = FakeProcess(["Fetching...\n", "Saved.\n"], 0,
                                          on_wait=lambda: target.write_bytes(b"%PDF"))

    assert PercollateRunner().render("https://example.com/post", target) == target


@patch("reader_printer.processors.percollate_runner.subprocess.Popen")
def test_renderer_nonzero_exit_is_conversion_failed(mock_popen, tmp_path):
    mock_popen.return_value = FakeProcess(["Error: boom\n"], 3)

    with pytest.raises(ConversionFailed) as excinfo:
        PercollateRunner().render("https://example.com/post", tmp_path / "out.pdf")

    assert excinfo.value.exit_code == 3


@patch("reader_printer.processors.percollate_runner.subprocess.Popen", side_effect=FileNotFoundError)
def test_missing_renderer_is_conversion_failed(mock_popen, tmp_path):
    with pytest.raises(ConversionFailed):
        PercollateRunner().render("https://example.com/post", tmp_path / "out.pdf")


@patch("reader_printer.processors.percollate_runner.subprocess.Popen")
def test_renderer_empty_output_is_conversion_failed(mock_popen, tmp_path):
    mock_popen.return_value = FakeProcess([], 0)

    with pytest.raises(ConversionFailed):
        PercollateRunner().render("https://example.com/post", tmp_path / "out.pdf")


def test_renderer_tolerates_undecodable_output(tmp_path):
    script = tmp_path / "fake_renderer.py"
    script.write_text(textwrap.dedent("""\
        import sys
        output = sys.argv[sys.argv.index("--output") + 1]
        with open(output, "wb") as f:
            f.write(b"%PDF-1.4 rendered")
        sys.stdout.buffer.write(b"Fetched \\xff\\xfe title\\n")
        """))
    target = tmp_path / "out.pdf"

    runner = PercollateRunner(command=[sys.executable, str(script)], timeout=30)

    assert runner.render("https://example.com/post", target) == target
    assert target.read_bytes() == b"%PDF-1.4 rendered"


@patch("reader_printer.processors.percollate_runner.subprocess.Popen")
def test_renderer_opens_output_with_replacement_decoding(mock_popen, tmp_path):
    target = tmp_path / "out.pdf"
    mock_popen.return_value = FakeProcess([], 0, on_wait=lambda: target.write_bytes(b"%PDF"))

    PercollateRunner().render("https://example.com/post", target)

    assert mock_popen.call_args.kwargs["encoding"] == "utf-8"
    assert mock_popen.call_args.kwargs["errors"] == "replace"


@patch("reader_printer.processors.percollate_runner.subprocess.Popen")
def test_renderer_child_is_killed_when_streaming_fails(mock_popen, tmp_path):
    process = FakeProcess([], 0, stdout=UndecodableStdout())
    mock_popen.return_value = process

    with pytest.raises(UnicodeDecodeError):
        PercollateRunner().render("https://example.com/post", tmp_path / "out.pdf")

    assert process.killed
    assert process.waited
