"""
MkDocs entry point for the content build.
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from mkdocs.config import config_options as c
from mkdocs.exceptions import PluginError
from mkdocs.plugins import BasePlugin
from mkdocs.utils import log

from content_plugins.content_build.config import BuildConfig, ConfigError, EmptyBuildError
from content_plugins.content_build.pipeline import BuildResult, ContentPipeline
from content_plugins.document_parser.document_parser import Document
from content_plugins.highlight.highlighter import Highlighter
from content_plugins.llms_sections.llms_writer import LlmsWriter
from content_plugins.prerender.page_writer import PageWriter


# Define plugin class
class ContentBuildPlugin(BasePlugin):
    """MkDocs plugin that runs the content pipeline after the site is built.

    Parses every markdown source into the collection index, crawls the
    prerender route set from the seed routes, and writes:
    - ``content/<collection>.json``: every document with its TOC and stats
    - ``prerender/routes.json`` and the materialized pages
    - ``content-diagnostics.json``: parse, path collision and broken link reports
    - ``llms.txt`` / ``llms-full.txt`` when ``llms.sections`` is configured
    """

    config_scheme = (
        ("content_dir", c.Type(str, default="")),
        ("jobs", c.Type(int, default=1)),
        ("like_case_sensitive", c.Type(bool, default=False)),
        ("collections", c.Type(dict, default={})),
        ("toc", c.Type(dict, default={})),
        ("highlight", c.Type(dict, default={})),
        ("prerender", c.Type(dict, default={})),
        ("llms", c.Type(dict, default={})),
    )

    def __init__(self):
        super().__init__()
        self.build_config = None
        self.result = None

    def on_config(self, config, **kwargs):
        # Malformed options abort the build before any page is rendered
        self.build_config = self.load_build_config()
        return config

    def load_build_config(self) -> BuildConfig:
        options = {key: self.config.get(key) for key, _ in self.config_scheme}
        try:
            return BuildConfig.from_options(options)
        except ConfigError as exc:
            raise PluginError(f"[content_build] invalid configuration: {exc}") from exc

    # Process will start after site build is complete
    def on_post_build(self, config):
        build_config = self.build_config or self.load_build_config()
        content_dir = Path(build_config.content_dir or config["docs_dir"])
        if not content_dir.is_absolute() and config.get("config_file_path"):
            content_dir = Path(config["config_file_path"]).resolve().parent / content_dir
        site_dir = Path(config["site_dir"]).resolve()
        log.info(f"[content_build] building content from {content_dir}")

        highlighter = Highlighter()
        try:
            self.result = ContentPipeline(build_config, highlighter).run(content_dir)
        except EmptyBuildError as exc:
            raise PluginError(f"[content_build] {exc}") from exc

        self.write_artifacts(self.result, site_dir, highlighter)

    # ----- Artifact writers -------

    def write_artifacts(self, result: BuildResult, site_dir: Path, highlighter: Highlighter) -> None:
        site_dir.mkdir(parents=True, exist_ok=True)
        self.write_collections(result, site_dir / "content")
        self.write_routes(result, site_dir / "prerender" / "routes.json")
        self.write_diagnostics(result, site_dir / "content-diagnostics.json")

        prerender = result.config.prerender
        if prerender.materialize:
            writer = PageWriter(
                site_dir / prerender.output_dir,
                highlighter,
                auto_subfolder_index=prerender.auto_subfolder_index,
                minify_html=prerender.minify_html,
                htmlmin_opts=prerender.htmlmin_opts,
                css_file=result.config.highlight_css_file if result.config.highlight_langs else "",
            )
            writer.write_stylesheet(minify=result.config.highlight_minify_css)
            writer.write(result.crawl, result.resolver)

        if result.config.llms is not None and result.sections:
            LlmsWriter(result.config.llms).write(result.sections, site_dir)
        elif result.config.llms is not None:
            log.info("[content_build] no llms sections configured; skipping llms.txt")

    @staticmethod
    def document_record(doc: Document) -> Dict[str, Any]:
        return {
            "path": doc.path,
            "source": doc.source_path,
            "title": doc.title,
            "description": doc.description,
            "front_matter": doc.front_matter,
            "toc": [entry.to_dict() for entry in (doc.toc or ())],
            "code_blocks": [
                {"language": code.language, "highlighted": code.highlighted}
                for code in doc.code_blocks()
            ],
            "stats": {
                "word_count": doc.word_count,
                "token_estimate": doc.token_estimate,
                "headings": len(doc.headings),
            },
            "hash": doc.content_hash,
        }

    def write_collections(self, result: BuildResult, out_dir: Path) -> List[Path]:
        out_dir.mkdir(parents=True, exist_ok=True)
        written = []
        for name, handle in result.handles.items():
            records = [self.document_record(doc) for doc in result.index.documents(handle)]
            out_path = out_dir / f"{name}.json"
            out_path.write_text(
                json.dumps(records, ensure_ascii=False, indent=2, default=str), encoding="utf-8"
            )
            log.info(f"[content_build] collection '{name}' written to {out_path} (documents={len(records)})")
            written.append(out_path)
        return written

    @staticmethod
    def write_routes(result: BuildResult, out_path: Path) -> Path:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "routes": result.crawl.routes,
            "discovered_from": result.crawl.discovered_from,
            "broken": [{"route": b.route, "referrer": b.referrer} for b in result.crawl.broken],
        }
        out_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        log.info(f"[content_build] prerender routes written to {out_path} (routes={len(result.crawl.routes)})")
        return out_path

    @staticmethod
    def write_diagnostics(result: BuildResult, out_path: Path) -> Path:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(
            json.dumps(result.diagnostics.to_list(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        if len(result.diagnostics):
            log.warning(f"[content_build] {len(result.diagnostics)} diagnostics written to {out_path}")
        return out_path
