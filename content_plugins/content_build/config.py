"""
Typed view over the ``content_build`` plugin options.

Options are written in ``mkdocs.yml``; snake_case keys are canonical and
the camelCase spellings used by Nuxt-style configs (``searchDepth``,
``crawlLinks``, ``contentFilters`` …) are accepted as aliases.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from content_plugins.collection.collection_index import FilterPredicate
from content_plugins.llms_sections.llms_writer import LlmsSettings
from content_plugins.llms_sections.section_extractor import SectionDefinition

DEFAULT_COLLECTION = "docs"
DEFAULT_SOURCE = ("**/*.md", "**/*.mdx")


class ConfigError(ValueError):
    """Malformed configuration; aborts the build."""


class EmptyBuildError(RuntimeError):
    """No document could be ingested."""


@dataclass(frozen=True)
class CollectionSource:
    name: str
    source: Tuple[str, ...] = DEFAULT_SOURCE
    exclude: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PrerenderOptions:
    routes: Tuple[str, ...] = ("/",)
    crawl_links: bool = False
    auto_subfolder_index: bool = True
    ignore: Tuple[str, ...] = ()
    materialize: bool = True
    output_dir: str = "prerendered"
    minify_html: bool = False
    htmlmin_opts: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BuildConfig:
    content_dir: str = ""
    jobs: int = 1
    like_case_sensitive: bool = False
    collections: Tuple[CollectionSource, ...] = (CollectionSource(DEFAULT_COLLECTION),)
    search_depth: int = 2
    highlight_langs: Tuple[str, ...] = ()
    highlight_css_file: str = "assets/highlight.css"
    highlight_minify_css: bool = True
    prerender: PrerenderOptions = field(default_factory=PrerenderOptions)
    llms: Optional[LlmsSettings] = None
    sections: Tuple[SectionDefinition, ...] = ()

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "BuildConfig":
        options = dict(options or {})

        jobs = _typed(options, "jobs", int, 1)
        if jobs < 1:
            raise ConfigError(f"jobs must be >= 1, got {jobs}")

        collections = _collections(_typed(options, "collections", dict, {}))
        names = {c.name for c in collections}

        toc = _typed(options, "toc", dict, {})
        search_depth = _typed(toc, "search_depth", int, 2, alias="searchDepth")
        if search_depth < 1:
            raise ConfigError(f"toc.search_depth must be >= 1, got {search_depth}")

        highlight = _typed(options, "highlight", dict, {})
        langs = _string_list(highlight, "langs", [])

        llms_cfg = _typed(options, "llms", dict, {})
        sections = _sections(llms_cfg, names)
        llms = _llms_settings(llms_cfg, required=bool(sections))

        return cls(
            content_dir=_typed(options, "content_dir", str, "", alias="contentDir"),
            jobs=jobs,
            like_case_sensitive=_typed(options, "like_case_sensitive", bool, False, alias="likeCaseSensitive"),
            collections=collections,
            search_depth=search_depth,
            highlight_langs=tuple(langs),
            highlight_css_file=_typed(highlight, "css_file", str, "assets/highlight.css", alias="cssFile"),
            highlight_minify_css=_typed(highlight, "minify_css", bool, True, alias="minifyCss"),
            prerender=_prerender(_typed(options, "prerender", dict, {})),
            llms=llms,
            sections=sections,
        )


def _lookup(mapping: Mapping[str, Any], key: str, alias: Optional[str]):
    if key in mapping:
        return mapping[key]
    if alias and alias in mapping:
        return mapping[alias]
    return None


def _typed(mapping: Mapping[str, Any], key: str, kind: type, default: Any, alias: Optional[str] = None):
    value = _lookup(mapping, key, alias)
    if value is None:
        return default
    # bool is an int subclass; keep them apart
    if kind is int and isinstance(value, bool):
        raise ConfigError(f"option '{key}' must be an integer, got {value!r}")
    if not isinstance(value, kind):
        raise ConfigError(f"option '{key}' must be of type {kind.__name__}, got {type(value).__name__}")
    return value


def _string_list(mapping: Mapping[str, Any], key: str, default: List[str], alias: Optional[str] = None) -> List[str]:
    value = _lookup(mapping, key, alias)
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"option '{key}' must be a string or a list of strings")
    return list(value)


def _collections(raw: Dict[str, Any]) -> Tuple[CollectionSource, ...]:
    if not raw:
        return (CollectionSource(DEFAULT_COLLECTION),)
    out = []
    for name, spec in raw.items():
        spec = spec or {}
        if not isinstance(spec, dict):
            raise ConfigError(f"collection '{name}' must be a mapping")
        source = _string_list(spec, "source", list(DEFAULT_SOURCE))
        out.append(CollectionSource(str(name), tuple(source), tuple(_string_list(spec, "exclude", []))))
    return tuple(out)


def _prerender(raw: Dict[str, Any]) -> PrerenderOptions:
    routes = _string_list(raw, "routes", ["/"])
    return PrerenderOptions(
        routes=tuple(routes),
        crawl_links=_typed(raw, "crawl_links", bool, False, alias="crawlLinks"),
        auto_subfolder_index=_typed(raw, "auto_subfolder_index", bool, True, alias="autoSubfolderIndex"),
        ignore=tuple(_string_list(raw, "ignore", [])),
        materialize=_typed(raw, "materialize", bool, True),
        output_dir=_typed(raw, "output_dir", str, "prerendered", alias="outputDir"),
        minify_html=_typed(raw, "minify_html", bool, False, alias="minifyHtml"),
        htmlmin_opts=_typed(raw, "htmlmin_opts", dict, {}),
    )


def _sections(llms_cfg: Dict[str, Any], collection_names) -> Tuple[SectionDefinition, ...]:
    raw_sections = _typed(llms_cfg, "sections", list, [])
    out = []
    for position, raw in enumerate(raw_sections, start=1):
        if not isinstance(raw, dict):
            raise ConfigError(f"llms.sections[{position}] must be a mapping")
        title = _typed(raw, "title", str, "")
        if not title:
            raise ConfigError(f"llms.sections[{position}] is missing 'title'")
        collection = _typed(raw, "content_collection", str, "", alias="contentCollection")
        if not collection:
            raise ConfigError(f"llms.sections[{position}] ('{title}') is missing 'content_collection'")
        if collection not in collection_names:
            raise ConfigError(
                f"llms.sections[{position}] ('{title}') uses unknown collection '{collection}'"
            )
        filters = []
        for raw_filter in _typed(raw, "content_filters", list, [], alias="contentFilters"):
            if not isinstance(raw_filter, dict):
                raise ConfigError(f"llms.sections[{position}] filters must be mappings")
            try:
                filters.append(FilterPredicate.from_dict(raw_filter))
            except ValueError as exc:
                raise ConfigError(f"llms.sections[{position}] ('{title}'): {exc}") from exc
        out.append(
            SectionDefinition(
                title=title,
                collection=collection,
                filters=tuple(filters),
                description=_typed(raw, "description", str, ""),
            )
        )
    return tuple(out)


def _llms_settings(llms_cfg: Dict[str, Any], required: bool) -> Optional[LlmsSettings]:
    if not llms_cfg:
        return None
    domain = _typed(llms_cfg, "domain", str, "")
    title = _typed(llms_cfg, "title", str, "")
    if required:
        if not domain:
            raise ConfigError("llms.domain is required when llms.sections is set")
        if not title:
            raise ConfigError("llms.title is required when llms.sections is set")
    full = _typed(llms_cfg, "full", dict, {})
    return LlmsSettings(
        domain=domain,
        title=title or "Documentation",
        description=_typed(llms_cfg, "description", str, ""),
        full_title=_typed(full, "title", str, ""),
        full_description=_typed(full, "description", str, ""),
        txt_path=_typed(llms_cfg, "txt_path", str, "llms.txt"),
        full_path=_typed(llms_cfg, "full_path", str, "llms-full.txt"),
    )
