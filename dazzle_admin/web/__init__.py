"""FastAPI web layer: app, guard middleware, routers and HTML components."""
