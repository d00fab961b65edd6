import pytest

from content_plugins.document_parser.document_parser import (
    BlockKind,
    DocumentParser,
    ParseError,
    ParseErrorKind,
)


SAMPLE = """---
title: Installation
description: Install the module on a server.
tags: [setup, server]
order: 2
---

# Installation

Drop the binary into `garrysmod/lua/bin`.

## Requirements

- A 64-bit server
- MongoDB 6+

```lua
require("mongo")
```

## Requirements

> Repeated heading, different anchor.
"""


class TestDocumentParser:
    def setup_method(self):
        self.parser = DocumentParser(content_root="/site/docs")

    def test_front_matter_and_metadata(self):
        """Test: Front matter and derived metadata end up on the document."""
        doc = self.parser.parse(SAMPLE, "/site/docs/1.getting-started/2.installation.md")
        assert doc.path == "/getting-started/installation"
        assert doc.source_path == "1.getting-started/2.installation.md"
        assert doc.extension == "md"
        assert doc.title == "Installation"
        assert doc.description == "Install the module on a server."
        assert doc.front_matter["tags"] == ["setup", "server"]
        assert doc.front_matter["order"] == 2
        assert doc.body.startswith("\n# Installation")
        assert doc.content_hash.startswith("sha256:")
        assert doc.word_count > 0
        assert doc.toc is None

    def test_block_sequence(self):
        """Test: The body is split into blocks in source order."""
        doc = self.parser.parse(SAMPLE, "install.md")
        kinds = [b.kind for b in doc.blocks]
        assert kinds == [
            BlockKind.HEADING,
            BlockKind.PARAGRAPH,
            BlockKind.HEADING,
            BlockKind.LIST,
            BlockKind.CODE,
            BlockKind.HEADING,
            BlockKind.QUOTE,
        ]
        code = doc.code_blocks()[0]
        assert code.language == "lua"
        assert code.text == 'require("mongo")'
        assert code.highlighted is False

    def test_anchor_collisions_get_suffix(self):
        """Test: Repeated headings get numbered anchors."""
        doc = self.parser.parse(SAMPLE, "install.md")
        anchors = [h.anchor for h in doc.headings]
        assert anchors == ["installation", "requirements", "requirements-2"]

    def test_heading_tree_nests_by_level(self):
        """Test: The outline nests headings by level."""
        doc = self.parser.parse(SAMPLE, "install.md")
        assert len(doc.outline) == 1
        root = doc.outline[0]
        assert root.text == "Installation"
        assert [c.anchor for c in root.children] == ["requirements", "requirements-2"]

    def test_malformed_front_matter_raises(self):
        """Test: Invalid YAML front matter raises a ParseError."""
        text = "---\ntitle: [unclosed\n---\n# Body\n"
        with pytest.raises(ParseError) as excinfo:
            self.parser.parse(text, "broken.md")
        assert excinfo.value.kind is ParseErrorKind.MALFORMED_FRONT_MATTER
        assert excinfo.value.source_path == "broken.md"

    def test_non_mapping_front_matter_raises(self):
        """Test: Front matter that is not a mapping raises a ParseError."""
        text = "---\n- just\n- a list\n---\nbody\n"
        with pytest.raises(ParseError):
            self.parser.parse(text, "list.md")

    def test_empty_front_matter_block(self):
        """Test: An empty front matter block is parsed as empty front matter."""
        doc = self.parser.parse("---\n---\n# Title\n", "empty.md")
        assert doc.front_matter == {}
        assert [h.text for h in doc.headings] == ["Title"]
        assert doc.body == "# Title\n"

    def test_empty_front_matter_does_not_swallow_later_rules(self):
        """Test: An empty front matter block ends at its own closing fence."""
        doc = self.parser.parse("---\n---\n# Title\n\nText\n\n---\n\nMore\n", "rules.md")
        assert doc.front_matter == {}
        assert [h.text for h in doc.headings] == ["Title"]
        assert doc.body.startswith("# Title\n")

    def test_unterminated_fence_is_kept_as_text(self):
        """Test: An unterminated code fence is kept as a text block."""
        text = "# Title\n\n```python\nprint('never closed')\n"
        doc = self.parser.parse(text, "fence.md")
        assert doc.blocks[-1].kind is BlockKind.TEXT
        assert "never closed" in doc.blocks[-1].text
        assert doc.code_blocks() == []

    def test_title_falls_back_to_h1_then_stem(self):
        """Test: The title falls back to the first H1, then to the file name."""
        doc = self.parser.parse("# From Heading\n\nText.\n", "a.md")
        assert doc.title == "From Heading"
        assert doc.description == "Text."
        doc = self.parser.parse("Only text.\n", "3.quick-start.md")
        assert doc.title == "Quick start"

    def test_front_matter_path_overrides(self):
        """Test: A front matter path replaces the derived one."""
        doc = self.parser.parse("---\npath: /custom\n---\nbody\n", "x/y.md")
        assert doc.path == "/custom"

    def test_headings_inside_code_are_ignored(self):
        """Test: Lines starting with # inside code are not headings."""
        doc = self.parser.parse("```bash\n# not a heading\n```\n## Real\n", "c.md")
        assert [h.text for h in doc.headings] == ["Real"]

    def test_setext_heading(self):
        """Test: Underlined headings are recognized."""
        doc = self.parser.parse("Overview\n========\n\nText\n", "s.md")
        assert doc.headings[0].level == 1
        assert doc.headings[0].text == "Overview"

    @pytest.mark.parametrize(
        "source, expected",
        [
            ("index.md", "/"),
            ("guide/index.md", "/guide"),
            ("1.guide/3.advanced.md", "/guide/advanced"),
            ("notes.mdx", "/notes"),
        ],
    )
    def test_derive_path(self, source, expected):
        """Test: Logical paths drop extensions, ordering prefixes and index."""
        assert DocumentParser.derive_path(source) == expected

    def test_slugify_anchor(self):
        """Test: Anchors are slugified and deduplicated."""
        seen = {}
        assert DocumentParser.slugify_anchor("Hello, World!", seen) == "hello-world"
        assert DocumentParser.slugify_anchor("Hello World", seen) == "hello-world-2"
        assert DocumentParser.slugify_anchor("???", seen) == "section"
