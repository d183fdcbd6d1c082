from .app_description import snapshot_from_app_description
from .snapshot_crawler import SnapshotCrawler
from .static_extractor import StaticPageExtractor, parse_html

__all__ = ["SnapshotCrawler", "StaticPageExtractor", "parse_html", "snapshot_from_app_description"]
