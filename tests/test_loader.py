"""
Unit tests for the document loader: titles, markdown stripping and directory scans.
"""

from pathlib import Path

from orchestrator.ingest.loader import bytes_to_text, extract_title, load_directory, preprocess_markdown


def test_extract_title_prefers_first_h1() -> None:
    text = "intro line\n# Express API Guide\n## Routing\n# Second"
    assert extract_title(text, "express-api-guide.md") == "Express API Guide"


def test_extract_title_falls_back_to_file_name() -> None:
    assert extract_title("## Only a subheading", "typescript_basics-notes.md") == "Typescript Basics Notes"


def test_preprocess_markdown_strips_markup() -> None:
    text = (
        "# Title\n\n"
        "Some **bold** and *italic* text with `inline` code.\n\n"
        "- first item\n"
        "* second item\n"
        "1. numbered\n\n"
        "> quoted\n\n"
        "See [the docs](https://example.com).\n\n\n\n"
        "```ts\nconst x = 1;\n```"
    )
    out = preprocess_markdown(text)
    assert out.startswith("Title")
    assert "Some bold and italic text with inline code." in out
    assert "first item\nsecond item\nnumbered" in out
    assert "quoted" in out and ">" not in out
    assert "See the docs." in out
    assert "const x = 1;" in out
    assert "```" not in out and "**" not in out and "\n\n\n" not in out


def test_bytes_to_text_decodes_plain_text() -> None:
    assert bytes_to_text("café".encode("utf-8"), "notes.txt") == "café"


def test_load_directory_skips_unsupported_and_empty(tmp_path: Path) -> None:
    (tmp_path / "b-guide.md").write_text("# B Guide\n\n**Strict** mode is on.", encoding="utf-8")
    (tmp_path / "a-notes.txt").write_text("Plain notes about routing.", encoding="utf-8")
    (tmp_path / "empty.md").write_text("   \n\n", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")
    (tmp_path / "nested").mkdir()

    documents = load_directory(tmp_path)

    assert [d.source for d in documents] == ["a-notes.txt", "b-guide.md"]
    assert documents[0].title == "A Notes"
    assert documents[1].title == "B Guide"
    assert "Strict mode is on." in documents[1].content
    assert "**" not in documents[1].content


def test_load_directory_missing_dir(tmp_path: Path) -> None:
    assert load_directory(tmp_path / "missing") == []


def test_bundled_data_directory_loads() -> None:
    data_dir = Path(__file__).resolve().parent.parent / "data"
    sources = [d.source for d in load_directory(data_dir)]
    assert "typescript-basics.md" in sources
    assert "express-api-guide.md" in sources
