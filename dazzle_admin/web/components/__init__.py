# Dazzle admin console components
# Pure Python components for HTML generation

from .base import Component
from .layout import AdminLayout, PlaceholderPage
from .navigation import NAV_ITEMS, Navigation
from .notices import NOTICES, Notice
from .forms import FormField, SubmitButton, TextAreaField, TextInputField
from .pages import (
    INQUIRY_COLUMNS,
    PRODUCT_COLUMNS,
    DashboardPage,
    DataTable,
    ListingPage,
    LoginPage,
    RegisterPage,
    SettingsPage,
)
from .approvals import ApprovalsPage, FilterBar, RequestCard, StatusBadge, normalize_status_filter

__all__ = [
    "AdminLayout",
    "ApprovalsPage",
    "Component",
    "DashboardPage",
    "DataTable",
    "FilterBar",
    "FormField",
    "INQUIRY_COLUMNS",
    "ListingPage",
    "LoginPage",
    "NAV_ITEMS",
    "NOTICES",
    "Navigation",
    "Notice",
    "PRODUCT_COLUMNS",
    "PlaceholderPage",
    "RegisterPage",
    "RequestCard",
    "SettingsPage",
    "StatusBadge",
    "SubmitButton",
    "TextAreaField",
    "TextInputField",
    "normalize_status_filter",
]
