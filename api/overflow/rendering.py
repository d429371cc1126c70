"""HTML rendering helpers for the server-rendered pages.

Question and answer bodies are Markdown; code blocks are highlighted with
Pygments under the "highlight" CSS class. Raw HTML in a body is user input,
so the rendered HTML is cleaned against an allow-list before it is marked
safe for the templates.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import bleach
from fastapi.templating import Jinja2Templates
from markdown import markdown
from markupsafe import Markup
from pygments.formatters import HtmlFormatter
from starlette.requests import Request

from overflow.config import settings

TEMPLATES_DIR = Path(__file__).parent / "templates"

# (unit, seconds) largest first
_TIME_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


ALLOWED_TAGS = bleach.sanitizer.ALLOWED_TAGS | {
    "p", "br", "hr", "h1", "h2", "h3", "h4", "h5", "h6",
    "pre", "code", "span", "div", "blockquote", "ul", "ol", "li",
    "table", "thead", "tbody", "tr", "th", "td", "img",
}
ALLOWED_ATTRIBUTES = {
    **bleach.sanitizer.ALLOWED_ATTRIBUTES,
    # codehilite marks up tokens with classes only
    "span": ["class"],
    "div": ["class"],
    "code": ["class"],
    "pre": ["class"],
    "img": ["src", "alt", "title"],
}
ALLOWED_PROTOCOLS = {"http", "https", "mailto"}


def render_md(text: str) -> Markup:
    html = markdown(
        text,
        extensions=["fenced_code", "codehilite", "tables"],
        extension_configs={"codehilite": {"css_class": "highlight", "guess_lang": False}},
    )
    return Markup(
        bleach.clean(
            html,
            tags=ALLOWED_TAGS,
            attributes=ALLOWED_ATTRIBUTES,
            protocols=ALLOWED_PROTOCOLS,
            strip=True,
        )
    )


def time_ago(created_at: datetime, now: Optional[datetime] = None) -> str:
    """"3 hours ago" style relative timestamp."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = max(int((now - created_at).total_seconds()), 0)
    for unit, size in _TIME_UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def format_count(value: int) -> str:
    """Abbreviate large counters: 1500 -> 1.5K, 2300000 -> 2.3M."""
    for suffix, size in (("M", 1_000_000), ("K", 1_000)):
        if value >= size:
            return f"{value / size:.1f}".rstrip("0").rstrip(".") + suffix
    return str(value)


templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["markdown"] = render_md
templates.env.filters["time_ago"] = time_ago
templates.env.filters["format_count"] = format_count
templates.env.globals["app_name"] = settings.app_name
templates.env.globals["pygments_css"] = HtmlFormatter(style="monokai").get_style_defs(
    ".highlight"
)


def render_page(request: Request, name: str, context: dict[str, Any]) -> str:
    """Render a template to a string so it can be cached before it is sent."""
    return templates.get_template(name).render({"request": request, **context})
