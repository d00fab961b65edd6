from content_plugins.document_parser.document_parser import CodeBlock, DocumentParser
from content_plugins.highlight.highlighter import Highlighter


class TestHighlighter:
    def setup_method(self):
        self.highlighter = Highlighter()

    def test_language_outside_allow_list_passes_through(self):
        """Test: Languages outside the allow-list are left alone."""
        block = CodeBlock(language="python", text="print(1)")
        result = self.highlighter.highlight(block, {"lua"})
        assert result is block
        assert result.highlighted is False
        assert result.tokens == ()

    def test_allowed_language_is_tokenized(self):
        """Test: Allowed languages are tokenized with Pygments."""
        block = CodeBlock(language="lua", text='local db = require("mongo")')
        result = self.highlighter.highlight(block, {"lua"})
        assert result.highlighted is True
        assert "".join(value for _, value in result.tokens) == block.text
        assert any(kind.startswith("Keyword") for kind, _ in result.tokens)
        # the input block is not modified
        assert block.highlighted is False

    def test_allow_list_is_case_insensitive(self):
        """Test: The allow-list ignores case."""
        block = CodeBlock(language="Lua", text="return 1")
        assert self.highlighter.highlight(block, ["LUA"]).highlighted is True

    def test_idempotent(self):
        """Test: Highlighting twice gives the same block."""
        block = CodeBlock(language="lua", text="local x = 1")
        once = self.highlighter.highlight(block, {"lua"})
        assert self.highlighter.highlight(once, {"lua"}) == once
        skipped = self.highlighter.highlight(CodeBlock("sh", "ls"), {"lua"})
        assert self.highlighter.highlight(skipped, {"lua"}) == skipped

    def test_unknown_lexer_falls_back_to_plain_text(self):
        """Test: An allowed language without a lexer falls back to plain text."""
        block = CodeBlock(language="not-a-real-language", text="abc")
        result = self.highlighter.highlight(block, {"not-a-real-language"})
        assert result.highlighted is True
        assert "".join(value for _, value in result.tokens) == "abc"

    def test_empty_language_never_highlighted(self):
        """Test: Blocks without a language are never highlighted."""
        block = CodeBlock(language="", text="plain")
        assert self.highlighter.highlight(block, {""}).highlighted is False

    def test_highlight_document(self):
        """Test: Only allowed blocks of a document are highlighted."""
        doc = DocumentParser().parse("```lua\nlocal a = 1\n```\n\n```js\nlet a = 1\n```\n", "d.md")
        result = self.highlighter.highlight_document(doc, ["lua"])
        flags = [(c.language, c.highlighted) for c in result.code_blocks()]
        assert flags == [("lua", True), ("js", False)]
        assert [c.highlighted for c in doc.code_blocks()] == [False, False]

    def test_render_html(self):
        """Test: Blocks render as HTML and the stylesheet is available."""
        plain = self.highlighter.render_html(CodeBlock("sh", "a < b"))
        assert plain == '<pre><code class="language-sh">a &lt; b</code></pre>'
        highlighted = self.highlighter.highlight(CodeBlock("lua", "local a = 1"), {"lua"})
        rendered = self.highlighter.render_html(highlighted)
        assert '<div class="highlight">' in rendered
        assert ".highlight" in self.highlighter.stylesheet()
