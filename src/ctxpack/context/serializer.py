"""Render selected items into the tagged context document, and parse it back.

Document shape:

    <assembled_context>
      <identity>
        <item type="goal" id="g-1" name="Ship v2" truncated="false">content</item>
      </identity>
      <project>
      </project>
      <other>
      </other>
    </assembled_context>

Every category element is always present, so an empty selection still
produces a well-formed document.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from ctxpack.context.models import BudgetCategory, SelectedItem, TokenEstimator

ROOT_TAG = "assembled_context"
ITEM_TAG = "item"
_ITEM_INDENT = "    "

_ESCAPES = [("&", "&amp;"), ("<", "&lt;"), (">", "&gt;"), ('"', "&quot;"), ("'", "&apos;")]

_CATEGORY_RE = re.compile(
    r"<(identity|project|other)>(.*?)</\1>", re.DOTALL
)
_ITEM_RE = re.compile(
    r'<item type="([^"]*)" id="([^"]*)" name="([^"]*)" truncated="(true|false)">(.*?)</item>',
    re.DOTALL,
)


@dataclass
class SerializedContext:
    """Serialized document plus its measured token count."""

    context_xml: str
    token_count: int


def escape_xml(text: str) -> str:
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def unescape_xml(text: str) -> str:
    for raw, escaped in reversed(_ESCAPES):
        text = text.replace(escaped, raw)
    return text


def render_item(
    item_type: str, item_id: str, name: str, content: str, truncated: bool = False
) -> str:
    """Render one item element, including its indentation and trailing newline.

    The selector prices items with this exact string, so tag overhead is
    part of every item's cost.
    """
    return (
        f'{_ITEM_INDENT}<{ITEM_TAG} type="{escape_xml(item_type)}" id="{escape_xml(item_id)}" '
        f'name="{escape_xml(name)}" truncated="{"true" if truncated else "false"}">'
        f"{escape_xml(content)}</{ITEM_TAG}>\n"
    )


def render_selected(selected: SelectedItem) -> str:
    return render_item(
        selected.item.item_type.value,
        selected.item.id,
        selected.item.display_name,
        selected.content,
        selected.truncated,
    )


def serialize(
    selected: list[SelectedItem],
    count_tokens: Callable[[str], int] = TokenEstimator.estimate,
) -> SerializedContext:
    """Render the selection grouped by category, in identity/project/other order."""
    by_category: dict[BudgetCategory, list[SelectedItem]] = {c: [] for c in BudgetCategory}
    for sel in selected:
        by_category[sel.category].append(sel)

    parts = [f"<{ROOT_TAG}>\n"]
    for category in BudgetCategory:
        parts.append(f"  <{category.value}>\n")
        for sel in by_category[category]:
            parts.append(render_selected(sel))
        parts.append(f"  </{category.value}>\n")
    parts.append(f"</{ROOT_TAG}>")

    context_xml = "".join(parts)
    return SerializedContext(context_xml=context_xml, token_count=count_tokens(context_xml))


def envelope_tokens(count_tokens: Callable[[str], int] = TokenEstimator.estimate) -> int:
    """Token cost of the root and category tags with no items inside.

    Items start after whitespace and end with a newline, so a full
    document never costs more than this plus its items' rendered costs.
    """
    return serialize([], count_tokens).token_count


def parse_context_xml(context_xml: str) -> dict[str, list[dict]]:
    """Recover items per category from a serialized document.

    Returns a dict keyed by every category name; each value is a list of
    {type, id, name, truncated, content} dicts in document order.
    """
    parsed: dict[str, list[dict]] = {c.value: [] for c in BudgetCategory}
    for cat_match in _CATEGORY_RE.finditer(context_xml):
        category, body = cat_match.group(1), cat_match.group(2)
        for m in _ITEM_RE.finditer(body):
            parsed[category].append({
                "type": unescape_xml(m.group(1)),
                "id": unescape_xml(m.group(2)),
                "name": unescape_xml(m.group(3)),
                "truncated": m.group(4) == "true",
                "content": unescape_xml(m.group(5)),
            })
    return parsed
