"""
Layout component for the admin console.

Wraps page content into a complete HTML document with the sidebar, an
optional notice and the shared stylesheet.
"""

from typing import Any, Dict, Optional

from .base import Component
from .navigation import Navigation
from .notices import Notice


class AdminLayout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[Dict[str, Any]] = None,
        current_path: str = "/admin",
        pending_count: int = 0,
        notice: Optional[str] = None,
        show_nav: bool = True,
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            user: Current user dict (`id`, `email`); no sidebar without it
            current_path: Current URL path for active navigation highlighting
            pending_count: Value for the Approvals badge
            notice: Optional notice code from the query string
            show_nav: Whether to show navigation (public pages turn it off)
        """
        self.title = title
        self.content = content
        self.user = user
        self.current_path = current_path
        self.pending_count = pending_count
        self.notice = notice
        self.show_nav = show_nav

    def render(self) -> str:
        nav_html = ""
        if self.show_nav:
            nav_html = Navigation(self.user, self.current_path, self.pending_count).render()
        body_class = "with-sidebar" if nav_html else "public"
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body class="{body_class}">
    <a href="#main-content" class="skip-link">Skip to main content</a>
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {Notice(self.notice).render()}
        {self.content}
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="robots" content="noindex, nofollow">
    <title>{self.escape(self.title)} - Dazzle Admin</title>
    <link rel="stylesheet" href="/static/console.css?v=1">
    """


class PlaceholderPage(Component):
    """Neutral page shown while the admin status is still being resolved.

    Shows neither the guarded content nor a redirect; it re-requests the same
    URL after a short delay.
    """

    def __init__(self, target: str, refresh_seconds: int = 1):
        self.target = target
        self.refresh_seconds = refresh_seconds

    def render(self) -> str:
        url = self.escape(self.target)
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta http-equiv="refresh" content="{int(self.refresh_seconds)}; url={url}">
    <meta name="robots" content="noindex, nofollow">
    <title>Loading - Dazzle Admin</title>
    <link rel="stylesheet" href="/static/console.css?v=1">
</head>
<body class="public">
    <main id="main-content" class="main-content placeholder" role="main" aria-busy="true">
        <div class="spinner" aria-hidden="true"></div>
        <p class="text-muted">Checking access&hellip;</p>
    </main>
</body>
</html>"""
