"""HTML report generator: one page listing every failed or new reference image of a run."""

from __future__ import annotations

import html
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from string import Template

from css_regression.models.results import FailureRecord

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = "Page.html"
FAIL_ITEM_TEMPLATE = "FailItem.html"
NEW_ITEM_TEMPLATE = "NewItem.html"
STATIC_ASSETS = ("index.css", "index.js")

_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>CSS Regression Report &mdash; $run_epoch</title>
<link rel="stylesheet" href="index.css">
</head>
<body>
<div class="container">
  <h1>CSS Regression Report</h1>
  <p class="meta">Run: $run_epoch &middot; $failed_count failed &middot; $new_count new reference image(s)</p>
  <div class="filter-bar">
    <button class="filter-btn active" data-filter="all">All</button>
    <button class="filter-btn" data-filter="fail">Failed</button>
    <button class="filter-btn" data-filter="new">New</button>
  </div>
  <div id="item-list">
$items
  </div>
</div>
<script src="index.js"></script>
</body>
</html>
"""

_FAIL_ITEM_HTML = """    <div class="item fail">
      <div class="item-header">
        <span class="badge fail">FAIL</span>
        <strong>$identifier</strong>
        <span class="item-meta">Window size: $window_size &middot; $reference_image_path</span>
      </div>
      <div class="images">
        <figure><img src="data:image/png;base64,$reference_image" alt="reference"/><figcaption>Reference</figcaption></figure>
        <figure><img src="data:image/png;base64,$fail_image" alt="current"/><figcaption>Current</figcaption></figure>
        <figure><img src="data:image/png;base64,$diff_image" alt="diff"/><figcaption>Diff</figcaption></figure>
      </div>
    </div>
"""

_NEW_ITEM_HTML = """    <div class="item new">
      <div class="item-header">
        <span class="badge new">NEW</span>
        <strong>$identifier</strong>
        <span class="item-meta">Window size: $window_size &middot; $reference_image_path</span>
      </div>
      <div class="images">
        <figure><img src="data:image/png;base64,$reference_image" alt="new reference"/><figcaption>New reference image</figcaption></figure>
      </div>
    </div>
"""

_INDEX_CSS = """:root { --fail: #ef4444; --new: #6366f1; --bg: #f8fafc; --card: white; --border: #e2e8f0; --text: #1e293b; --muted: #64748b; }
* { margin: 0; padding: 0; box-sizing: border-box; }
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: var(--bg); color: var(--text); line-height: 1.6; padding: 1.5rem; }
.container { max-width: 1400px; margin: 0 auto; }
h1 { font-size: 1.8rem; margin-bottom: 0.3rem; }
.meta { color: var(--muted); margin-bottom: 1.5rem; font-size: 0.9rem; }
.filter-bar { display: flex; gap: 0.5rem; margin-bottom: 1rem; }
.filter-btn { padding: 0.3rem 0.8rem; border-radius: 6px; border: 1px solid var(--border); background: var(--card); cursor: pointer; font-size: 0.82rem; }
.filter-btn.active { background: var(--new); color: white; border-color: var(--new); }
.item { background: var(--card); border: 1px solid var(--border); border-radius: 8px; margin-bottom: 1rem; padding: 1rem; }
.item.fail { border-left: 4px solid var(--fail); }
.item.new { border-left: 4px solid var(--new); }
.item-header { display: flex; gap: 0.6rem; align-items: center; flex-wrap: wrap; margin-bottom: 0.8rem; }
.item-meta { color: var(--muted); font-size: 0.85rem; }
.badge { padding: 0.1rem 0.5rem; border-radius: 4px; font-size: 0.75rem; font-weight: 600; color: white; }
.badge.fail { background: var(--fail); }
.badge.new { background: var(--new); }
.images { display: grid; grid-template-columns: repeat(auto-fit, minmax(280px, 1fr)); gap: 1rem; }
figure { text-align: center; }
figure img { max-width: 100%; border: 1px solid var(--border); cursor: zoom-in; background: repeating-conic-gradient(#eee 0% 25%, white 0% 50%) 50% / 16px 16px; }
figure img.zoomed { max-width: none; cursor: zoom-out; }
figcaption { color: var(--muted); font-size: 0.8rem; }
"""

_INDEX_JS = """document.querySelectorAll('.filter-btn').forEach(btn => {
  btn.addEventListener('click', () => {
    document.querySelectorAll('.filter-btn').forEach(b => b.classList.remove('active'));
    btn.classList.add('active');
    const filter = btn.dataset.filter;
    document.querySelectorAll('.item').forEach(item => {
      item.style.display = filter === 'all' || item.classList.contains(filter) ? '' : 'none';
    });
  });
});
document.querySelectorAll('figure img').forEach(img => {
  img.addEventListener('click', () => img.classList.toggle('zoomed'));
});
"""

DEFAULT_TEMPLATES = {
    PAGE_TEMPLATE: _PAGE_HTML,
    FAIL_ITEM_TEMPLATE: _FAIL_ITEM_HTML,
    NEW_ITEM_TEMPLATE: _NEW_ITEM_HTML,
    "index.css": _INDEX_CSS,
    "index.js": _INDEX_JS,
}


@dataclass
class ReportTemplates:
    page: Template
    fail_item: Template
    new_item: Template
    assets: dict[str, str]


def load_templates(template_folder: Path | None = None) -> ReportTemplates:
    """Built-in templates, with any file present in template_folder taking precedence."""
    sources = dict(DEFAULT_TEMPLATES)
    if template_folder is not None:
        if not template_folder.is_dir():
            raise FileNotFoundError(f"Template folder not found: {template_folder}")
        for name in sources:
            custom = template_folder / name
            if custom.is_file():
                logger.debug("Using custom report template %s", custom)
                sources[name] = custom.read_text(encoding="utf-8")
    return ReportTemplates(
        page=Template(sources[PAGE_TEMPLATE]),
        fail_item=Template(sources[FAIL_ITEM_TEMPLATE]),
        new_item=Template(sources[NEW_ITEM_TEMPLATE]),
        assets={name: sources[name] for name in STATIC_ASSETS},
    )


def build_item(record: FailureRecord, templates: ReportTemplates) -> str:
    """Render the fragment for one record. New baselines use the NewItem template."""
    template = templates.new_item if record.is_new_baseline else templates.fail_item
    return template.safe_substitute(
        identifier=html.escape(record.identifier),
        viewport_size=html.escape(record.viewport_size),
        window_size=html.escape(record.window_size),
        reference_image_path=html.escape(record.reference_image_path),
        fail_image=record.fail_image,
        diff_image=record.diff_image,
        reference_image=record.reference_image,
    )


def _write_text(path: Path, content: str) -> None:
    # Write beside the target and swap in, so a failed write leaves no partial file
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(content, encoding="utf-8")
        os.replace(tmp, path)
    finally:
        tmp.unlink(missing_ok=True)


def generate_html_report(
    records: list[FailureRecord],
    run_dir: Path,
    run_epoch: int,
    templates: ReportTemplates | None = None,
) -> Path:
    """Write index.html plus its static assets into run_dir. Returns the index path."""
    templates = templates or load_templates()
    items = "".join(build_item(r, templates) for r in records)
    new_count = sum(1 for r in records if r.is_new_baseline)

    page = templates.page.safe_substitute(
        items=items,
        run_epoch=run_epoch,
        count=len(records),
        failed_count=len(records) - new_count,
        new_count=new_count,
    )

    run_dir.mkdir(parents=True, exist_ok=True)
    for name, content in templates.assets.items():
        _write_text(run_dir / name, content)
    index_path = run_dir / "index.html"
    _write_text(index_path, page)
    return index_path
