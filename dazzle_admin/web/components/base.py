"""
Base Component class for the console's HTML components.

Pages are assembled from small Python objects that render HTML strings. There
is no template engine; escaping happens explicitly through `escape`.
"""

from typing import Optional, Any
import html


class Component:
    """Base class for all UI components.

    Subclasses implement `render()` and use the helpers below for escaping,
    class lists and attribute strings.
    """

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    def __str__(self) -> str:
        return self.render()

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a CSS class string with conditional classes.

        Example:
            >>> Component.classes("badge", "badge-pending", active=True, muted=False)
            "badge badge-pending active"
        """
        classes = [c for c in args if c]
        classes.extend(key.replace("_", "-") for key, value in conditionals.items() if value)
        return " ".join(classes)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build HTML attributes from keyword arguments.

        A trailing underscore maps reserved names (class_ -> class, for_ ->
        for); inner underscores become hyphens (data_id -> data-id). True
        renders a boolean attribute, False and None drop the attribute.

        Example:
            >>> Component.attributes(id="q", data_status="pending", required=True)
            'id="q" data-status="pending" required'
        """
        result = []
        for key, value in attrs.items():
            if key.endswith("_"):
                key = key[:-1]
            else:
                key = key.replace("_", "-")

            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')

        return " ".join(result)


def format_timestamp(value: Optional[str]) -> str:
    """Shorten an ISO timestamp to `YYYY-MM-DD HH:MM` for display."""
    if not value:
        return ""
    text = str(value).replace("T", " ")
    return text[:16]
