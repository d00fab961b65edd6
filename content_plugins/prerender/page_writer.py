"""
Materialize crawled routes as static HTML files.
"""

import html
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import csscompressor
import htmlmin
import markdown

from content_plugins.document_parser.document_parser import BlockKind, Document
from content_plugins.highlight.highlighter import Highlighter
from content_plugins.prerender.route_crawler import CrawlResult, Resolver

logger = logging.getLogger(f"mkdocs.plugins.{__name__}")

PAGE_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<meta name="description" content="{description}">
{stylesheet}</head>
<body>
<main>
{content}
</main>
</body>
</html>
"""


class PageWriter:
    def __init__(
        self,
        output_dir: Path,
        highlighter: Highlighter,
        auto_subfolder_index: bool = True,
        minify_html: bool = False,
        htmlmin_opts: Optional[Dict] = None,
        css_file: str = "",
    ):
        self.output_dir = Path(output_dir)
        self.highlighter = highlighter
        self.auto_subfolder_index = auto_subfolder_index
        self.minify_html = minify_html
        self.htmlmin_opts = htmlmin_opts or {}
        self.css_file = css_file

    def output_path(self, route: str) -> Path:
        """
        ``/guide/setup`` -> ``guide/setup/index.html`` with subfolder indexes,
        ``guide/setup.html`` without. Folder routes always get ``index.html``.
        """
        rel = route.strip("/")
        if rel == "index" or rel.endswith("/index"):
            rel = rel[: -len("index")].rstrip("/")
            return self.output_dir / rel / "index.html" if rel else self.output_dir / "index.html"
        if not rel:
            return self.output_dir / "index.html"
        if route.endswith("/") or self.auto_subfolder_index:
            return self.output_dir / rel / "index.html"
        return self.output_dir / f"{rel}.html"

    def render_body(self, document: Document) -> str:
        parts: List[str] = []
        for block in document.blocks:
            if block.kind is BlockKind.HEADING:
                heading = block.heading
                parts.append(
                    f'<h{heading.level} id="{html.escape(heading.anchor, quote=True)}">'
                    f"{html.escape(heading.text)}</h{heading.level}>"
                )
            elif block.kind is BlockKind.CODE:
                parts.append(self.highlighter.render_html(block.code))
            elif block.kind is BlockKind.TEXT:
                parts.append(f"<pre>{html.escape(block.text)}</pre>")
            else:
                parts.append(markdown.markdown(block.text, extensions=["tables"]))
        return "\n".join(parts)

    def render_page(self, document: Document, route: str) -> str:
        stylesheet = ""
        if self.css_file:
            depth = len(self.output_path(route).relative_to(self.output_dir).parts) - 1
            href = "../" * depth + self.css_file.lstrip("/")
            stylesheet = f'<link rel="stylesheet" href="{html.escape(href, quote=True)}">\n'
        page = PAGE_TEMPLATE.format(
            title=html.escape(document.title),
            description=html.escape(document.description, quote=True),
            stylesheet=stylesheet,
            content=self.render_body(document),
        )
        if self.minify_html:
            page = self._minify_html_page(page)
        return page

    def _minify_html_page(self, output: str) -> str:
        """Minify HTML with htmlmin, code blocks kept verbatim."""
        output_opts: Dict[str, Union[bool, str, Tuple[str, ...]]] = {
            "remove_comments": True,
            "remove_empty_space": False,
            "remove_all_empty_space": False,
            "reduce_empty_attributes": True,
            "reduce_boolean_attributes": False,
            "remove_optional_attribute_quotes": False,
            "convert_charrefs": True,
            "keep_pre": True,
            "pre_tags": ("pre", "textarea"),
            "pre_attr": "pre",
        }
        for key, value in self.htmlmin_opts.items():
            if key in output_opts:
                output_opts[key] = value
            else:
                logger.warning("htmlmin option '%s' not recognized", key)
        return htmlmin.minify(output, **output_opts)

    def write_stylesheet(self, minify: bool = False) -> Optional[Path]:
        if not self.css_file:
            return None
        css = self.highlighter.stylesheet()
        if minify:
            css = csscompressor.compress(css)
        out_path = self.output_dir / self.css_file.lstrip("/")
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(css, encoding="utf-8")
        logger.debug(f"[prerender] wrote stylesheet {out_path}")
        return out_path

    def write(self, crawl: CrawlResult, resolver: Resolver) -> List[Path]:
        written = []
        for route in crawl.routes:
            document = resolver(route)
            if document is None:
                continue
            out_path = self.output_path(route)
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(self.render_page(document, route), encoding="utf-8")
            written.append(out_path)
        logger.info(f"[prerender] materialized {len(written)} pages under {self.output_dir}")
        return written
