"""
Build-time content pipeline.

raw files -> parse -> highlight -> TOC -> collection index, then the route
crawler and the section extractor read the index. Every build starts from
an empty index.
"""

import concurrent.futures
import fnmatch
import os
from dataclasses import dataclass, field, replace
from operator import itemgetter
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar, Union

from mkdocs.utils import log

from content_plugins.collection.collection_index import CollectionHandle, CollectionIndex
from content_plugins.content_build.config import BuildConfig, CollectionSource, EmptyBuildError
from content_plugins.content_build.diagnostics import DiagnosticKind, Diagnostics
from content_plugins.document_parser.document_parser import Document, DocumentParser, ParseError, ParseErrorKind
from content_plugins.highlight.highlighter import Highlighter
from content_plugins.llms_sections.section_extractor import SectionView, build_sections
from content_plugins.prerender.route_crawler import CrawlResult, PathResolver, RouteCrawler, extract_links
from content_plugins.toc.toc_builder import build_toc

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BuildResult:
    config: BuildConfig
    index: CollectionIndex
    handles: Dict[str, CollectionHandle]
    resolver: PathResolver
    crawl: CrawlResult
    sections: List[SectionView]
    diagnostics: Diagnostics
    documents: List[Document] = field(default_factory=list)


def run_ordered(func: Callable[[T], R], items: Sequence[T], jobs: int = 1) -> List[R]:
    """Map ``func`` over ``items`` on a thread pool; results come back in input order."""
    if jobs <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    with concurrent.futures.ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = [(position, executor.submit(func, item)) for position, item in enumerate(items)]
        ordered = [(position, future.result()) for position, future in futures]
    return [outcome for _, outcome in sorted(ordered, key=itemgetter(0))]


class ContentPipeline:
    def __init__(self, config: BuildConfig, highlighter: Optional[Highlighter] = None):
        self.config = config
        self.highlighter = highlighter or Highlighter()

    # File discovery

    @staticmethod
    def _matches(rel_path: str, patterns: Iterable[str]) -> bool:
        for pattern in patterns:
            if fnmatch.fnmatchcase(rel_path, pattern):
                return True
            # "**/x" also matches at the top level
            if pattern.startswith("**/") and fnmatch.fnmatchcase(rel_path, pattern[3:]):
                return True
        return False

    def discover(self, content_dir: Path, collection: CollectionSource) -> List[Path]:
        """Collect source files for ``collection``; hidden directories are skipped."""
        results = []
        for root, dirs, files in os.walk(content_dir):
            dirs[:] = sorted(d for d in dirs if not d.startswith("."))
            for name in sorted(files):
                full = Path(root) / name
                rel = full.relative_to(content_dir).as_posix()
                if self._matches(rel, collection.source) and not self._matches(rel, collection.exclude):
                    results.append(full)
        return results

    # Per-document stages

    def process_file(self, parser: DocumentParser, file_path: Path) -> Union[Document, ParseError]:
        try:
            text = file_path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as exc:
            return ParseError(ParseErrorKind.UNREADABLE_SOURCE, str(file_path), f"cannot read source: {exc}")
        try:
            document = parser.parse(text, str(file_path))
        except ParseError as exc:
            return exc
        document = self.highlighter.highlight_document(document, self.config.highlight_langs)
        toc = tuple(build_toc(document, self.config.search_depth))
        return replace(document, toc=toc)

    def load_collection(
        self, content_dir: Path, collection: CollectionSource, diagnostics: Diagnostics
    ) -> List[Document]:
        files = self.discover(content_dir, collection)
        log.info(f"[content_build] collection '{collection.name}': {len(files)} source files")
        parser = DocumentParser(content_root=str(content_dir))
        outcomes = run_ordered(lambda p: self.process_file(parser, p), files, self.config.jobs)

        documents = []
        for outcome in outcomes:
            if isinstance(outcome, ParseError):
                rel = parser.relative_source(outcome.source_path)
                diagnostics.record(DiagnosticKind(outcome.kind.value), rel, outcome.message, source=rel)
                continue
            documents.append(outcome)
        return documents

    # Whole build

    def run(self, content_dir: Union[str, Path]) -> BuildResult:
        content_dir = Path(content_dir).resolve()
        diagnostics = Diagnostics()
        index = CollectionIndex(
            like_case_sensitive=self.config.like_case_sensitive, diagnostics=diagnostics
        )

        handles: Dict[str, CollectionHandle] = {}
        all_documents: List[Document] = []
        for collection in self.config.collections:
            documents = self.load_collection(content_dir, collection, diagnostics)
            handles[collection.name] = index.ingest(documents, name=collection.name)
            all_documents.extend(index.documents(handles[collection.name]))

        if not all_documents:
            raise EmptyBuildError(f"no documents could be ingested from {content_dir}")

        links = self.precompute_links(all_documents)
        resolver = PathResolver(index, list(handles.values()))
        prerender = self.config.prerender
        crawler = RouteCrawler(
            resolver,
            link_extractor=lambda doc: links[doc.source_path] if doc.source_path in links else extract_links(doc),
            crawl_links=prerender.crawl_links,
            auto_subfolder_index=prerender.auto_subfolder_index,
            ignore=prerender.ignore,
        )
        crawl = crawler.crawl(prerender.routes)
        for broken in crawl.broken:
            message = f"{broken.route} does not resolve to a document"
            if broken.referrer:
                message += f" (linked from {broken.referrer})"
            diagnostics.record(DiagnosticKind.BROKEN_LINK, broken.route, message, source=broken.referrer)

        sections = build_sections(self.config.sections, index, handles)
        log.info(
            f"[content_build] {len(all_documents)} documents, {len(crawl.routes)} routes, "
            f"{len(sections)} sections, {len(diagnostics)} diagnostics"
        )
        return BuildResult(
            config=self.config,
            index=index,
            handles=handles,
            resolver=resolver,
            crawl=crawl,
            sections=sections,
            diagnostics=diagnostics,
            documents=all_documents,
        )

    def precompute_links(self, documents: Sequence[Document]) -> Dict[str, Set[str]]:
        """Outbound links per source file, extracted up front so the crawl only does bookkeeping."""
        unique: Dict[str, Document] = {}
        for doc in documents:
            unique.setdefault(doc.source_path, doc)
        pairs: List[Tuple[str, Set[str]]] = run_ordered(
            lambda doc: (doc.source_path, extract_links(doc)), list(unique.values()), self.config.jobs
        )
        return dict(pairs)
