from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from starlette.requests import Request
from starlette.responses import Response

FEED_MUTATIONS = Counter(
    "reddit_feeds_mutations_total",
    "Subreddit feed mutations made through the control panel",
    ["action", "outcome"],
)
AUDIT_ENTRIES_DROPPED = Counter(
    "reddit_feeds_audit_entries_dropped_total",
    "Audit log entries dropped because the queue was full",
)
AUDIT_ENTRIES_FAILED = Counter(
    "reddit_feeds_audit_entries_failed_total",
    "Audit log entries that could not be written",
)


async def metrics(request: Request) -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
