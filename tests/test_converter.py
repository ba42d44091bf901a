"""Tests for file type filtering and MarkItDown conversion."""

from types import SimpleNamespace

import pytest

from file_crawler.core.exceptions import ConversionError
from file_crawler.services.converter import MarkItDownConverter, is_supported_file

pytestmark = pytest.mark.asyncio

EXTENSIONS = [".pdf", ".docx", ".md"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("report.pdf", True),
        ("REPORT.PDF", True),
        ("notes/plan.Docx", True),
        ("README.md", True),
        ("image.png", False),
        ("Makefile", False),
        ("archive.pdf.zip", False),
    ],
)
async def test_is_supported_file(path, expected):
    assert is_supported_file(path, EXTENSIONS) is expected


class StubMarkItDown:
    def __init__(self, text_content=None, error: Exception | None = None):
        self.text_content = text_content
        self.error = error
        self.paths: list[str] = []

    def convert(self, path: str):
        self.paths.append(path)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text_content=self.text_content)


async def test_convert_returns_markdown():
    stub = StubMarkItDown(text_content="# Title\n\nBody")
    converter = MarkItDownConverter(markitdown=stub)

    assert await converter.convert("/docs/a.docx") == "# Title\n\nBody"
    assert stub.paths == ["/docs/a.docx"]


async def test_convert_wraps_library_errors():
    converter = MarkItDownConverter(markitdown=StubMarkItDown(error=RuntimeError("bad zip header")))

    with pytest.raises(ConversionError, match="bad zip header"):
        await converter.convert("/docs/broken.docx")


async def test_convert_without_text_fails():
    converter = MarkItDownConverter(markitdown=StubMarkItDown(text_content=None))

    with pytest.raises(ConversionError, match="produced no text"):
        await converter.convert("/docs/empty.pdf")


async def test_convert_plain_text_file(tmp_path):
    path = tmp_path / "notes.md"
    path.write_text("Meeting moved to Thursday.", encoding="utf-8")

    text = await MarkItDownConverter().convert(str(path))

    assert "Meeting moved to Thursday." in text
