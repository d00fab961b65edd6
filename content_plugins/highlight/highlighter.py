import html
import logging
from dataclasses import replace
from typing import Dict, Iterable, Set

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from content_plugins.document_parser.document_parser import Block, BlockKind, CodeBlock, Document

log = logging.getLogger("mkdocs.plugins.highlight")


class Highlighter:
    """
    Allow-list dispatch over Pygments lexers.

    Only code blocks whose language is in the configured allow-list are
    tokenized; everything else passes through untouched. The lexers
    themselves belong to Pygments.
    """

    def __init__(self, css_class: str = "highlight", style: str = "default"):
        self.css_class = css_class
        self.style = style
        self._lexers: Dict[str, Lexer] = {}
        self._warned: Set[str] = set()

    @staticmethod
    def normalize_languages(languages: Iterable[str]) -> Set[str]:
        return {str(lang).strip().lower() for lang in languages if str(lang).strip()}

    def highlight(self, block: CodeBlock, allowed_languages: Iterable[str]) -> CodeBlock:
        if block.highlighted:
            return block
        language = (block.language or "").lower()
        if not language or language not in self.normalize_languages(allowed_languages):
            return block
        lexer = self._lexer_for(language)
        tokens = tuple(
            (self.token_name(ttype), value) for ttype, value in lexer.get_tokens(block.text)
        )
        return replace(block, highlighted=True, tokens=tokens)

    def highlight_document(self, document: Document, allowed_languages: Iterable[str]) -> Document:
        """Return ``document`` with every code block passed through :meth:`highlight`."""
        allowed = self.normalize_languages(allowed_languages)
        if not allowed:
            return document
        blocks = []
        changed = False
        for block in document.blocks:
            if block.kind is BlockKind.CODE:
                code = self.highlight(block.code, allowed)
                if code is not block.code:
                    changed = True
                    block = Block(block.kind, block.text, code=code)
            blocks.append(block)
        return replace(document, blocks=tuple(blocks)) if changed else document

    def _lexer_for(self, language: str) -> Lexer:
        lexer = self._lexers.get(language)
        if lexer is not None:
            return lexer
        try:
            lexer = get_lexer_by_name(language, stripnl=False, ensurenl=False)
        except ClassNotFound:
            if language not in self._warned:
                self._warned.add(language)
                log.warning(f"[highlight] no Pygments lexer for '{language}'; using plain text")
            lexer = TextLexer(stripnl=False, ensurenl=False)
        self._lexers[language] = lexer
        return lexer

    @staticmethod
    def token_name(ttype) -> str:
        # Token.Keyword.Namespace -> "Keyword.Namespace"
        return str(ttype).replace("Token.", "", 1) if str(ttype) != "Token" else ""

    # HTML rendering

    def formatter(self) -> HtmlFormatter:
        return HtmlFormatter(cssclass=self.css_class, style=self.style)

    def render_html(self, block: CodeBlock) -> str:
        if not block.highlighted:
            lang_class = f' class="language-{html.escape(block.language, quote=True)}"' if block.language else ""
            return f"<pre><code{lang_class}>{html.escape(block.text)}</code></pre>"
        lexer = self._lexer_for(block.language)
        return pygments_highlight(block.text, lexer, self.formatter())

    def stylesheet(self) -> str:
        return self.formatter().get_style_defs(f".{self.css_class}")
