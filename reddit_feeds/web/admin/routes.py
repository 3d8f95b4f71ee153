"""Control panel URL routes, mounted under ``/cp/{guild_id}``."""

from starlette.routing import Mount, Route

from reddit_feeds.web.admin import views

# HTML forms can only GET and POST, so update and delete get their own paths
reddit_routes = [
    Route("/reddit", views.reddit_feeds, methods=["GET"], name="reddit_feeds"),
    Route("/reddit/", views.reddit_feeds, methods=["GET"]),
    Route("/reddit", views.reddit_feed_create, methods=["POST"], name="reddit_feed_create"),
    Route("/reddit/", views.reddit_feed_create, methods=["POST"]),
    Route("/reddit/{item}/update", views.reddit_feed_update, methods=["POST"], name="reddit_feed_update"),
    Route("/reddit/{item}/delete", views.reddit_feed_delete, methods=["POST"], name="reddit_feed_delete"),
]

cp_routes = [
    Mount("/cp/{guild_id}", routes=reddit_routes),
]
