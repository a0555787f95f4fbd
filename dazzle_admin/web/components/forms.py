"""
Form field components shared by the auth, settings and approval forms.
"""

from typing import Optional

from .base import Component


class FormField(Component):
    """Wrapper that renders label, input slot and help text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.help_text = help_text

    def render(self, input_html: str) -> str:
        required_marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        help_html = (
            f'<p class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        label_attrs = self.attributes(for_=self.field_id, class_="form-label")
        return (
            '<div class="form-field">'
            f"<label {label_attrs}>{self.escape(self.label)}{required_marker}</label>"
            f"{input_html}"
            f"{help_html}"
            "</div>"
        )


class TextInputField(FormField):
    """Single-line input (`text`, `email`, `password` or `search`).

    Password inputs never echo a value back into the page.
    """

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        placeholder: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type=input_type,
            value=None if input_type == "password" else value,
            autocomplete=autocomplete,
            placeholder=placeholder,
            required=self.required,
            aria_describedby=f"{self.field_id}-help" if self.help_text else None,
            **attrs,
        )
        return super().render(f'<input class="form-input" {input_attrs}>')


class TextAreaField(FormField):
    def render(self, value: str = "", rows: int = 3, name: Optional[str] = None, **attrs: str) -> str:
        textarea_attrs = self.attributes(
            id=self.field_id,
            name=name or self.field_id,
            rows=str(rows),
            aria_describedby=f"{self.field_id}-help" if self.help_text else None,
            **attrs,
        )
        return super().render(f'<textarea class="form-input" {textarea_attrs}>{self.escape(value)}</textarea>')


class SubmitButton(Component):
    def __init__(self, label: str, *, variant: str = "primary", name: Optional[str] = None):
        self.label = label
        self.variant = variant
        self.name = name

    def render(self) -> str:
        attrs = self.attributes(type="submit", name=self.name, class_=self.classes("btn", f"btn-{self.variant}"))
        return f"<button {attrs}>{self.escape(self.label)}</button>"
