"""
Prerender route discovery.

Starting from the configured seed routes, follow internal links found in
each document until no new route turns up. Routes that do not resolve to a
document are reported as broken links and left out of the result.
"""

import fnmatch
import posixpath
import re
from collections import deque
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set
from urllib.parse import unquote, urljoin, urlsplit

import markdown
from bs4 import BeautifulSoup
from mkdocs.utils import log

from content_plugins.collection.collection_index import CollectionHandle, CollectionIndex
from content_plugins.document_parser.document_parser import MARKDOWN_EXTENSIONS, Document, DocumentParser

MULTI_SLASH_RE = re.compile(r"/{2,}")

LinkExtractor = Callable[[Document], Iterable[str]]
Resolver = Callable[[str], Optional[Document]]


@dataclass(frozen=True)
class BrokenLink:
    route: str
    referrer: Optional[str]


@dataclass
class CrawlResult:
    routes: List[str] = field(default_factory=list)
    discovered_from: Dict[str, Optional[str]] = field(default_factory=dict)
    broken: List[BrokenLink] = field(default_factory=list)

    @property
    def visited(self) -> Set[str]:
        return set(self.routes)


def normalize_route(href: str, base: Optional[str] = None) -> Optional[str]:
    """
    Turn an href into a site route, or None for anything that is not an
    internal page link (external URLs, mailto:, fragment-only links).
    """
    href = (href or "").strip()
    if not href or href.startswith("#"):
        return None
    parts = urlsplit(href)
    if parts.scheme or parts.netloc:
        return None
    path = unquote(parts.path)
    if not path:
        return None
    if base is not None and not path.startswith("/"):
        path = urljoin(base, path)
    if not path.startswith("/"):
        path = "/" + path
    trailing = path.endswith("/")
    path = posixpath.normpath(MULTI_SLASH_RE.sub("/", path))
    if path.endswith(MARKDOWN_EXTENSIONS):
        return DocumentParser.derive_path(path)
    if path in ("/", "//", "."):
        return "/"
    return path + "/" if trailing else path


def link_base(document: Document, href: str) -> str:
    """
    Base for resolving a relative ``href`` found in ``document``.

    Links to markdown sources are relative to the source file's folder;
    anything else is relative to the page as served, and index pages are
    served as folders.
    """
    if urlsplit(href).path.endswith(MARKDOWN_EXTENSIONS):
        folder = posixpath.dirname(document.source_path)
        return f"/{folder}/" if folder else "/"
    if PurePosixPath(document.source_path).stem == "index":
        return document.path.rstrip("/") + "/"
    return document.path


def extract_links(document: Document) -> Set[str]:
    """Internal link targets of ``document``, as normalized routes."""
    rendered = markdown.markdown(document.body, extensions=["tables", "fenced_code"])
    soup = BeautifulSoup(rendered, "html.parser")
    links = set()
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"]
        route = normalize_route(href, base=link_base(document, href))
        if route is not None:
            links.add(route)
    return links


class PathResolver:
    """
    Path-based route lookup across one or more collections.

    ``/guide/index`` also resolves to the document stored at ``/guide``,
    since index files take their folder's path.
    """

    def __init__(self, index: CollectionIndex, handles: Sequence[CollectionHandle]):
        self.index = index
        self.handles = list(handles)

    def __call__(self, route: str) -> Optional[Document]:
        candidates = [route]
        if route.endswith("/index"):
            candidates.append(route[: -len("/index")] or "/")
        for candidate in candidates:
            for handle in self.handles:
                doc = self.index.get(handle, candidate)
                if doc is not None:
                    return doc
        return None


class RouteCrawler:
    def __init__(
        self,
        resolver: Resolver,
        link_extractor: LinkExtractor = extract_links,
        crawl_links: bool = True,
        auto_subfolder_index: bool = True,
        ignore: Sequence[str] = (),
    ):
        self.resolver = resolver
        self.link_extractor = link_extractor
        self.crawl_links = crawl_links
        self.auto_subfolder_index = auto_subfolder_index
        self.ignore = list(ignore)

    def rewrite(self, route: str) -> str:
        """Lookup form of ``route``: ``/guide/`` -> ``/guide/index`` with subfolder indexes."""
        if self.auto_subfolder_index and route.endswith("/"):
            return f"{route}index"
        return route

    def is_ignored(self, route: str) -> bool:
        return any(fnmatch.fnmatchcase(route, pattern) for pattern in self.ignore)

    def crawl(self, seed_routes: Iterable[str]) -> CrawlResult:
        result = CrawlResult()
        visited: Set[str] = set()
        frontier = deque()
        for seed in seed_routes:
            route = normalize_route(seed)
            if route is not None:
                frontier.append((route, None))

        # visited is keyed by the lookup form, so /guide/ and /guide/index
        # are one route; the result keeps the route as written
        while frontier:
            route, referrer = frontier.popleft()
            lookup = self.rewrite(route)
            if lookup in visited or self.is_ignored(route) or self.is_ignored(lookup):
                continue
            visited.add(lookup)

            document = self.resolver(lookup)
            if document is None:
                result.broken.append(BrokenLink(route, referrer))
                if referrer is None:
                    log.debug(f"[prerender] seed route {route} does not resolve to a document")
                else:
                    log.debug(f"[prerender] broken link {route} (linked from {referrer})")
                continue

            result.routes.append(route)
            result.discovered_from[route] = referrer
            if not self.crawl_links:
                continue
            for link in sorted(self.link_extractor(document)):
                if self.rewrite(link) not in visited:
                    frontier.append((link, route))

        log.info(f"[prerender] crawled {len(result.routes)} routes ({len(result.broken)} broken)")
        return result
