"""Telegram HTML message rendering."""

from __future__ import annotations

import html
from datetime import datetime
from typing import Sequence
from zoneinfo import ZoneInfo

from ..config import SourceProfile
from .listing import normalize_text
from .preview import PreviewItem

SEPARATOR = "━━━━━━━━━━━━━━━"
MAX_TITLE_LENGTH = 200


def clean_text(text: str, limit: int = MAX_TITLE_LENGTH) -> str:
    """Collapse whitespace, escape for Telegram HTML and truncate."""

    return html.escape(normalize_text(text)[:limit].strip(), quote=False)


def format_timestamp(now: datetime, timezone: str = "Asia/Kolkata") -> str:
    return now.astimezone(ZoneInfo(timezone)).strftime("%d/%m/%Y, %I:%M:%S %p")


def _render_items(items: Sequence[PreviewItem]) -> list[str]:
    lines: list[str] = []
    for index, item in enumerate(items, start=1):
        entry = f"{index}. {clean_text(item.title)}"
        if item.date:
            entry += f"\n   📅 <i>{clean_text(item.date)}</i>"
        lines.append(entry + "\n")
    return lines


def render_update(
    profile: SourceProfile,
    items: Sequence[PreviewItem],
    now: datetime,
    max_items: int = 3,
    timezone: str = "Asia/Kolkata",
) -> str:
    """Build the change notification sent to subscribers."""

    parts = [f"<b>{profile.icon} {html.escape(profile.label)}</b>\n{SEPARATOR}\n"]
    if items:
        parts.append("<b>Latest Updates:</b>\n")
        parts.extend(_render_items(items[:max_items]))
    else:
        parts.append("New update available!\n")
    parts.append(f'🔗 <a href="{html.escape(profile.url)}">View All Updates</a>\n')
    parts.append(f"⏰ <i>{format_timestamp(now, timezone)}</i>")
    return "\n".join(parts)


def render_listing(
    profile: SourceProfile,
    items: Sequence[PreviewItem],
    now: datetime,
    timezone: str = "Asia/Kolkata",
) -> str:
    """Build the reply for an on-demand status command."""

    parts = [f"<b>{profile.icon} {html.escape(profile.listing_label)}</b>\n{SEPARATOR}\n"]
    parts.extend(_render_items(items))
    parts.append(f'🔗 <a href="{html.escape(profile.url)}">View All</a>\n')
    parts.append(f"⏰ <i>{format_timestamp(now, timezone)}</i>")
    return "\n".join(parts)


__all__ = ["MAX_TITLE_LENGTH", "SEPARATOR", "clean_text", "format_timestamp", "render_listing", "render_update"]
