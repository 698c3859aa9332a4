"""docstash crawl layer — provider client, retry, actions, job orchestration."""

from docstash.crawl.actions import parse_action, parse_actions
from docstash.crawl.orchestrator import CrawlOptions, CrawlOrchestrator, CrawlStatus
from docstash.crawl.provider import CrawlProvider, FirecrawlProvider
from docstash.crawl.retry import RetryPolicy, with_retry

__all__ = [
    "CrawlOptions",
    "CrawlOrchestrator",
    "CrawlStatus",
    "CrawlProvider",
    "FirecrawlProvider",
    "RetryPolicy",
    "with_retry",
    "parse_action",
    "parse_actions",
]
