"""
HTML page rendering.

Templates are plain HTML files with {{name}} placeholders. Rows and other
repeated fragments are built here, with every dynamic value escaped, and
dropped into the page templates in a single substitution pass.
"""

import html
import re
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from ..core.models import Bucket, BucketListing, ObjectInfo

_BASE_DIR = Path(__file__).parent
TEMPLATE_DIR = _BASE_DIR / "templates"
STATIC_DIR = _BASE_DIR / "static"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB"]


def _load(name: str) -> str:
    return (TEMPLATE_DIR / name).read_text(encoding="utf-8")


def _render(raw: str, context: dict[str, str]) -> str:
    # Single pass so substituted values are never re-scanned for placeholders
    return _PLACEHOLDER.sub(lambda m: context.get(m.group(1), ""), raw)


def _esc(value) -> str:
    return html.escape(str(value), quote=True)


def _url_path(value: str) -> str:
    return quote(value, safe="/")


def format_size(size: int) -> str:
    """Human-readable byte count: 1536 -> "1.5 KB"."""
    amount = float(size)
    for unit in _SIZE_UNITS:
        if amount < 1024 or unit == _SIZE_UNITS[-1]:
            if unit == "B":
                return f"{int(amount)} B"
            return f"{amount:.1f} {unit}"
        amount /= 1024
    return f"{size} B"


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d %H:%M:%S")


def render_page(title: str, body_html: str) -> str:
    return _render(_load("layout.html"), {"title": _esc(title), "body": body_html})


def _bucket_row(bucket: Bucket, allow_delete: bool) -> str:
    delete_html = ""
    if allow_delete:
        delete_html = (
            f'<button class="btn btn-danger" data-action="delete-bucket" '
            f'data-bucket="{_esc(bucket.name)}">Delete</button>'
        )
    return (
        '<li class="bucket-item">'
        f'<a href="/buckets/{_esc(_url_path(bucket.name))}">'
        f'<span class="material-icons">folder_open</span>{_esc(bucket.name)}</a>'
        f'<span class="muted">{_esc(format_date(bucket.creation_date))}</span>'
        f"{delete_html}"
        "</li>"
    )


def render_buckets_page(buckets: list[Bucket], allow_delete: bool, title: str) -> str:
    """The bucket list page."""
    if buckets:
        rows = "".join(_bucket_row(b, allow_delete) for b in buckets)
    else:
        rows = '<li class="empty">No buckets yet.</li>'

    body = _render(_load("buckets.html"), {"bucket_rows": rows})
    return render_page(title, body)


def _object_row(bucket_name: str, obj: ObjectInfo, allow_delete: bool) -> str:
    bucket_url = _esc(_url_path(bucket_name))
    key_url = _esc(_url_path(obj.key))

    if obj.is_folder:
        name_html = f'<a href="/buckets/{bucket_url}/{key_url}">{_esc(obj.display_name)}/</a>'
        actions = ""
    else:
        name_html = _esc(obj.display_name)
        actions = (
            f'<a class="btn" href="/api/buckets/{bucket_url}/objects/{key_url}">Download</a>'
            f'<button class="btn" data-action="share" data-key="{_esc(obj.key)}">Link</button>'
        )
        if allow_delete:
            actions += (
                f'<button class="btn btn-danger" data-action="delete-object" '
                f'data-key="{_esc(obj.key)}">Delete</button>'
            )

    size = "" if obj.is_folder else format_size(obj.size)
    return (
        "<tr>"
        f'<td class="icon"><span class="material-icons">{_esc(obj.icon)}</span></td>'
        f'<td class="name">{name_html}</td>'
        f'<td class="size">{_esc(size)}</td>'
        f'<td class="date">{_esc(format_date(obj.last_modified))}</td>'
        f'<td class="class">{_esc(obj.storage_class or "")}</td>'
        f'<td class="actions">{actions}</td>'
        "</tr>"
    )


def _breadcrumbs_html(listing: BucketListing) -> str:
    bucket_url = _esc(_url_path(listing.bucket_name))
    parts = [f'<a href="/buckets/{bucket_url}">{_esc(listing.bucket_name)}</a>']
    for crumb in listing.breadcrumbs:
        parts.append(
            f'<a href="/buckets/{bucket_url}/{_esc(_url_path(crumb.prefix))}">'
            f"{_esc(crumb.name)}</a>"
        )
    return '<span class="sep">/</span>'.join(parts)


def render_bucket_page(listing: BucketListing, allow_delete: bool, title: str) -> str:
    """The object browser for one bucket folder."""
    if listing.objects:
        rows = "".join(
            _object_row(listing.bucket_name, obj, allow_delete)
            for obj in listing.objects
        )
    else:
        rows = '<tr><td colspan="6" class="empty">No objects.</td></tr>'

    body = _render(
        _load("bucket.html"),
        {
            "bucket_name": _esc(listing.bucket_name),
            "prefix": _esc(listing.prefix),
            "breadcrumbs": _breadcrumbs_html(listing),
            "object_rows": rows,
        },
    )
    return render_page(f"{listing.bucket_name} - {title}", body)
