"""
Page bodies for the console. Each component renders the content of `<main>`;
routes wrap it in `AdminLayout`.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .base import Component, format_timestamp
from .forms import SubmitButton, TextInputField
from .notices import form_error


class LoginPage(Component):
    def __init__(self, *, email: str = "", error: Optional[str] = None):
        self.email = email
        self.error = error

    def render(self) -> str:
        email = TextInputField("email", "Email", required=True).render(
            value=self.email, input_type="email", autocomplete="username"
        )
        password = TextInputField("password", "Password", required=True).render(
            input_type="password", autocomplete="current-password"
        )
        return f"""
        <section class="auth-card" aria-labelledby="login-title">
            <h1 id="login-title">Admin sign-in</h1>
            {form_error(self.error)}
            <form method="post" action="/admin/login" class="form">
                {email}
                {password}
                {SubmitButton("Sign in").render()}
            </form>
            <p class="text-muted">No admin account yet? <a href="/admin/register">Request access</a></p>
        </section>"""


class RegisterPage(Component):
    """Admin access request form: creates the account and a pending request."""

    def __init__(self, *, full_name: str = "", email: str = "", error: Optional[str] = None):
        self.full_name = full_name
        self.email = email
        self.error = error

    def render(self) -> str:
        fields = [
            TextInputField("full_name", "Full name", required=True).render(value=self.full_name, autocomplete="name"),
            TextInputField("email", "Email", required=True).render(
                value=self.email, input_type="email", autocomplete="email"
            ),
            TextInputField("password", "Password", required=True, help_text="At least 6 characters.").render(
                input_type="password", autocomplete="new-password"
            ),
            TextInputField("confirm_password", "Confirm password", required=True).render(
                input_type="password", autocomplete="new-password"
            ),
        ]
        return f"""
        <section class="auth-card" aria-labelledby="register-title">
            <h1 id="register-title">Request admin access</h1>
            <p class="text-muted">An existing administrator reviews every request.</p>
            {form_error(self.error)}
            <form method="post" action="/admin/register" class="form">
                {''.join(fields)}
                {SubmitButton("Submit request").render()}
            </form>
            <p class="text-muted">Already approved? <a href="/admin/login">Sign in</a></p>
        </section>"""


class StatCard(Component):
    def __init__(self, label: str, value: Optional[int], href: Optional[str] = None, highlight: bool = False):
        self.label = label
        self.value = value
        self.href = href
        self.highlight = highlight

    def render(self) -> str:
        shown = "&ndash;" if self.value is None else self.escape(self.value)
        inner = (
            f'<span class="stat-value">{shown}</span>'
            f'<span class="stat-label">{self.escape(self.label)}</span>'
        )
        if self.href:
            inner = f'<a href="{self.escape(self.href)}">{inner}</a>'
        return f'<div class="{self.classes("stat-card", highlight=self.highlight)}">{inner}</div>'


class DashboardPage(Component):
    """Count-only badges; a missing count (failed load) renders as a dash."""

    def __init__(self, counts: Mapping[str, Optional[int]], pending: Optional[int]):
        self.counts = counts
        self.pending = pending

    def render(self) -> str:
        cards = [
            StatCard("Products", self.counts.get("products"), "/admin/products"),
            StatCard("Active products", self.counts.get("active_products"), "/admin/products"),
            StatCard("Inquiries", self.counts.get("inquiries"), "/admin/inquiries"),
            StatCard("New inquiries", self.counts.get("new_inquiries"), "/admin/inquiries"),
            StatCard("Pending approvals", self.pending, "/admin/approvals", highlight=bool(self.pending)),
        ]
        return f"""
        <h1>Dashboard</h1>
        <div class="stat-grid">
            {''.join(c.render() for c in cards)}
        </div>"""


# (column key, header)
Column = Tuple[str, str]


class DataTable(Component):
    def __init__(self, columns: Sequence[Column], rows: List[Dict[str, Any]], *, empty_text: str = "Nothing here yet."):
        self.columns = columns
        self.rows = rows
        self.empty_text = empty_text

    def render(self) -> str:
        if not self.rows:
            return f'<p class="empty-state">{self.escape(self.empty_text)}</p>'
        head = "".join(f'<th scope="col">{self.escape(label)}</th>' for _key, label in self.columns)
        body = "".join(
            "<tr>" + "".join(f"<td>{self._cell(row, key)}</td>" for key, _label in self.columns) + "</tr>"
            for row in self.rows
        )
        return f'<table class="data-table"><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>'

    def _cell(self, row: Mapping[str, Any], key: str) -> str:
        value = row.get(key)
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if key.endswith("_at"):
            return self.escape(format_timestamp(value))
        return self.escape(value)


PRODUCT_COLUMNS: List[Column] = [
    ("name", "Name"),
    ("sku", "SKU"),
    ("category", "Category"),
    ("price", "Price"),
    ("is_active", "Active"),
    ("created_at", "Created"),
]

INQUIRY_COLUMNS: List[Column] = [
    ("name", "Name"),
    ("email", "Email"),
    ("company", "Company"),
    ("product_interest", "Product"),
    ("status", "Status"),
    ("created_at", "Received"),
]


class ListingPage(Component):
    def __init__(self, title: str, table: DataTable):
        self.title = title
        self.table = table

    def render(self) -> str:
        return f"<h1>{self.escape(self.title)}</h1>{self.table.render()}"


class SettingsPage(Component):
    def __init__(self, user: Mapping[str, Any], *, error: Optional[str] = None):
        self.user = user
        self.error = error

    def render(self) -> str:
        new_password = TextInputField("new_password", "New password", required=True, help_text="At least 6 characters.")
        confirm = TextInputField("confirm_password", "Confirm new password", required=True)
        return f"""
        <h1>Settings</h1>
        <section class="card" aria-labelledby="account-title">
            <h2 id="account-title">Account</h2>
            <dl class="account-details">
                <dt>Email</dt><dd>{self.escape(self.user.get("email"))}</dd>
                <dt>Created</dt><dd>{self.escape(format_timestamp(self.user.get("created_at")))}</dd>
                <dt>Last sign-in</dt><dd>{self.escape(format_timestamp(self.user.get("last_sign_in_at")))}</dd>
            </dl>
        </section>
        <section class="card" aria-labelledby="password-title">
            <h2 id="password-title">Change password</h2>
            {form_error(self.error)}
            <form method="post" action="/admin/settings" class="form">
                {new_password.render(input_type="password", autocomplete="new-password")}
                {confirm.render(input_type="password", autocomplete="new-password")}
                {SubmitButton("Update password").render()}
            </form>
        </section>"""
