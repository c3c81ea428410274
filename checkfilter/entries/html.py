"""Webflow-style checkbox entries backed by BeautifulSoup tags.

Markup conventions: an entry carries ``checkbox-filter="<group>"``; its label
is a ``.w-form-label`` or ``<label>`` child; the checkbox input may carry
``fs-list-field`` / ``fs-list-value`` for external tag filters.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from bs4 import BeautifulSoup, Tag

GROUP_ATTR = "checkbox-filter"
ACTIVE_LABEL_CLASS = "is-list-active"
CHECKED_INPUT_CLASS = "w--redirected-checked"
HIDDEN_CLASSES = ("hidden", "hide", "invisible")

_WHITESPACE_RE = re.compile(r"\s+")


def _text(tag: Tag | None) -> str | None:
    return tag.get_text() if tag is not None else None


def _document_root(tag: Tag) -> Tag:
    root = tag
    for parent in tag.parents:
        root = parent
    return root


def _form_label_text(element: Tag) -> str | None:
    return _text(element.select_one(".w-form-label"))


def _label_child_text(element: Tag) -> str | None:
    return _text(element.find("label"))


def _input_label_text(element: Tag) -> str | None:
    checkbox = element.select_one('input[type="checkbox"]')
    if checkbox is None:
        return None
    sibling = checkbox.find_next_sibling()
    if sibling is not None and sibling.name == "label":
        return sibling.get_text()
    input_id = checkbox.get("id")
    if input_id:
        return _text(_document_root(element).find("label", attrs={"for": input_id}))
    return None


def _element_text(element: Tag) -> str | None:
    return _WHITESPACE_RE.sub(" ", element.get_text())


# First non-empty result wins.
LABEL_STRATEGIES: tuple[Callable[[Tag], str | None], ...] = (
    _form_label_text,
    _label_child_text,
    _input_label_text,
    _element_text,
)


def extract_label(element: Tag) -> str | None:
    for strategy in LABEL_STRATEGIES:
        try:
            text = strategy(element)
        except (AttributeError, TypeError, ValueError):
            continue
        if text and text.strip():
            return text.strip()
    return None


def _remove_class(tag: Tag, name: str) -> None:
    classes = [cls for cls in tag.get("class", []) if cls != name]
    if classes:
        tag["class"] = classes
    elif tag.has_attr("class"):
        del tag["class"]


def _add_class(tag: Tag, name: str) -> None:
    classes = list(tag.get("class", []))
    if name not in classes:
        classes.append(name)
    tag["class"] = classes


def _without_display(style: str) -> str:
    parts = [part.strip() for part in style.split(";") if part.strip()]
    kept = [part for part in parts if not part.replace(" ", "").startswith("display:")]
    return "; ".join(kept)


class HtmlEntry:
    """``EntryHandle`` over one ``[checkbox-filter]`` tag."""

    def __init__(self, element: Tag) -> None:
        self.element = element

    @property
    def group_name(self) -> str:
        value = self.element.get(GROUP_ATTR)
        return value if isinstance(value, str) else ""

    @classmethod
    def from_html(cls, html: str) -> HtmlEntry:
        fragment = BeautifulSoup(html, "html.parser")
        element = fragment.find(attrs={GROUP_ATTR: True}) or fragment.find()
        if element is None:
            raise ValueError("template does not contain an element")
        return cls(element)

    def template(self) -> str:
        return str(self.element)

    def get_label(self) -> str | None:
        return extract_label(self.element)

    def _checkbox(self) -> Tag | None:
        return self.element.select_one('input[type="checkbox"]')

    def is_checked(self) -> bool:
        label = self.element.find("label")
        if label is not None and ACTIVE_LABEL_CLASS in label.get("class", []):
            return True
        checkbox = self._checkbox()
        return checkbox is not None and checkbox.has_attr("checked")

    def set_checked(self, checked: bool) -> None:
        label = self.element.find("label")
        if label is not None:
            (_add_class if checked else _remove_class)(label, ACTIVE_LABEL_CLASS)
        styled_input = self.element.select_one(".w-checkbox-input")
        if styled_input is not None:
            (_add_class if checked else _remove_class)(styled_input, CHECKED_INPUT_CLASS)
        checkbox = self._checkbox()
        if checkbox is not None:
            if checked:
                checkbox["checked"] = ""
            elif checkbox.has_attr("checked"):
                del checkbox["checked"]

    def show(self) -> None:
        style = _without_display(self.element.get("style", ""))
        if style:
            self.element["style"] = style
        elif self.element.has_attr("style"):
            del self.element["style"]
        if self.element.has_attr("data-filtered"):
            del self.element["data-filtered"]
        for name in HIDDEN_CLASSES:
            _remove_class(self.element, name)

    def hide(self) -> None:
        style = _without_display(self.element.get("style", ""))
        self.element["style"] = f"{style}; display: none" if style else "display: none"
        self.element["data-filtered"] = "hidden"

    def is_hidden(self) -> bool:
        return self.element.get("data-filtered") == "hidden"

    def filter_key(self) -> tuple[str, str] | None:
        checkbox = self._checkbox()
        if checkbox is None:
            return None
        field = checkbox.get("fs-list-field")
        value = checkbox.get("fs-list-value")
        if isinstance(field, str) and isinstance(value, str) and field and value:
            return field, value
        return None

    def __repr__(self) -> str:
        return f"HtmlEntry({self.get_label()!r})"


def find_entries(root: Tag) -> list[HtmlEntry]:
    """Return every ``[checkbox-filter]`` entry below ``root`` in document order."""
    return [HtmlEntry(tag) for tag in root.find_all(attrs={GROUP_ATTR: True})]


__all__ = [
    "GROUP_ATTR",
    "HtmlEntry",
    "LABEL_STRATEGIES",
    "extract_label",
    "find_entries",
]
