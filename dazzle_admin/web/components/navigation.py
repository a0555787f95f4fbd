"""
Sidebar navigation for the admin console.

The active item is chosen by best prefix match against the current path, so
`/admin/approvals?q=x` highlights "Approvals" and only `/admin` itself
highlights "Dashboard".
"""

from typing import Any, Dict, List, Optional, Tuple

from .base import Component


# (href, label)
NAV_ITEMS: List[Tuple[str, str]] = [
    ("/admin", "Dashboard"),
    ("/admin/products", "Products"),
    ("/admin/inquiries", "Inquiries"),
    ("/admin/approvals", "Approvals"),
    ("/admin/settings", "Settings"),
]

APPROVALS_HREF = "/admin/approvals"


def active_href(current_path: str) -> Optional[str]:
    path = (current_path or "/").split("?", 1)[0].rstrip("/") or "/"
    best: Optional[str] = None
    for href, _label in NAV_ITEMS:
        if path == href or path.startswith(href + "/"):
            if best is None or len(href) > len(best):
                best = href
    return best


class Navigation(Component):
    """Sidebar with the console sections, the pending badge and sign-out."""

    def __init__(self, user: Optional[Dict[str, Any]] = None, current_path: str = "/admin", pending_count: int = 0):
        self.user = user
        self.current_path = current_path
        self.pending_count = pending_count

    def render(self) -> str:
        if not self.user:
            return ""
        active = active_href(self.current_path)
        links = "".join(self._render_item(href, label, href == active) for href, label in NAV_ITEMS)
        email = self.user.get("email", "")
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar">
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header">
                <span class="sidebar-title">Dazzle Admin</span>
            </div>
            <ul class="sidebar-items">
                {links}
            </ul>
            <div class="sidebar-footer">
                <div class="user-email">{self.escape(email)}</div>
                {self._render_logout()}
            </div>
        </nav>
    </aside>"""

    def _render_item(self, href: str, label: str, active: bool) -> str:
        badge = ""
        if href == APPROVALS_HREF and self.pending_count > 0:
            badge = (
                f'<span class="nav-badge" aria-label="{self.pending_count} pending">'
                f"{self.pending_count}</span>"
            )
        attrs = self.attributes(
            href=href,
            class_=self.classes("nav-item", active=active),
            aria_current="page" if active else None,
        )
        return f'<li><a {attrs}><span class="nav-text">{self.escape(label)}</span>{badge}</a></li>'

    def _render_logout(self) -> str:
        return (
            '<form method="post" action="/admin/logout" class="logout-form">'
            '<button type="submit" class="btn btn-link">Sign out</button>'
            "</form>"
        )
