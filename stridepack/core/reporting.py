# -*- coding: utf-8 -*-
from __future__ import annotations

import html
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from stridepack.config import APP_NAME, APP_VERSION
from stridepack.core.cleanup import CleanupAnalysis, format_size
from stridepack.core.pack import ExportResult
from stridepack.models import ValidationIssue


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _esc(s: Any) -> str:
    return html.escape("" if s is None else str(s))


def _group_issues(issues: List[ValidationIssue]) -> Dict[str, List[ValidationIssue]]:
    groups: Dict[str, List[ValidationIssue]] = {"ERROR": [], "WARNING": [], "INFO": []}
    for r in issues:
        lvl = (r.level or "INFO").upper()
        groups.setdefault(lvl, []).append(r)
    return groups


_CSS = """
    body { font-family: -apple-system, Segoe UI, Roboto, Arial, sans-serif; margin: 24px; }
    h1 { margin: 0 0 6px 0; }
    .sub { color: #444; margin: 0 0 18px 0; }
    .card { border: 1px solid #ddd; border-radius: 10px; padding: 14px; margin: 12px 0; }
    .row { display: flex; gap: 18px; flex-wrap: wrap; }
    .kv { min-width: 200px; }
    .k { color: #666; font-size: 12px; }
    .v { font-weight: 600; }
    table { width: 100%; border-collapse: collapse; margin-top: 8px; }
    th, td { border-bottom: 1px solid #eee; padding: 8px; text-align: left; vertical-align: top; font-size: 13px; }
    th { background: #fafafa; }
    .pill { display: inline-block; padding: 2px 8px; border-radius: 999px; font-size: 12px; font-weight: 700; }
    .err { background: #ffe9e9; color: #8a0000; }
    .warn { background: #fff4d6; color: #7a5200; }
    .info { background: #e9f3ff; color: #003a7a; }
    code { background: #f6f6f6; padding: 1px 4px; border-radius: 6px; }
    .small { font-size: 12px; color: #555; }
"""


def _pill(level: str) -> str:
    lvl = level.upper()
    if lvl == "ERROR":
        return '<span class="pill err">ERROR</span>'
    if lvl == "WARNING":
        return '<span class="pill warn">WARNING</span>'
    return '<span class="pill info">INFO</span>'


def _kv(key: str, value: Any) -> str:
    return f'<div class="kv"><div class="k">{_esc(key)}</div><div class="v">{_esc(value)}</div></div>'


def _table(headers: List[str], rows: List[List[str]], empty: str) -> str:
    if not rows:
        return f"<p class='small'>{_esc(empty)}</p>"
    head = "".join(f"<th>{_esc(h)}</th>" for h in headers)
    body = "".join("<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>" for row in rows)
    return f"<table><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def _page(title: str, heading: str, sections: List[str]) -> str:
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>{_esc(title)}</title>
  <style>{_CSS}</style>
</head>
<body>
  <h1>{_esc(heading)}</h1>
  <p class="sub">Generated {_esc(_utc_now())} (UTC) - {_esc(APP_NAME)} {_esc(APP_VERSION)}</p>
  {"".join(sections)}
</body>
</html>
"""


def build_export_report_html(result: ExportResult) -> str:
    m = result.manifest

    by_cat: Dict[str, int] = {}
    for p in result.plan:
        by_cat[p.category] = by_cat.get(p.category, 0) + 1

    summary = (
        '<div class="card"><div class="row">'
        + _kv("Package", m.name)
        + _kv("Version", m.version)
        + _kv("Author", m.author)
        + _kv("Stride", m.stride_version)
        + "</div><div class='row' style='margin-top:10px;'>"
        + _kv("Archive", result.package_path)
        + _kv("Hash (SHA-256)", m.package_hash)
        + "</div></div>"
    )

    cats = "".join(
        f"<li><code>{_esc(cat)}</code> - {count}</li>"
        for cat, count in sorted(by_cat.items(), key=lambda kv: (-kv[1], kv[0]))
    ) or "<li class='small'>No files staged.</li>"

    deps = _table(
        ["Resource", "Package path", "References"],
        [
            [f"<code>{_esc(d.actual_path)}</code>", f"<code>{_esc(d.new_resource_path or '')}</code>", _esc(len(d.references))]
            for d in result.dependencies
        ],
        "No resource dependencies.",
    )

    groups = _group_issues(result.issues)
    issue_rows = [
        [_pill(i.level), f"<code>{_esc(i.code)}</code>", _esc(i.message) + (f" <code>{_esc(i.relpath)}</code>" if i.relpath else "")]
        for lvl in ("ERROR", "WARNING", "INFO")
        for i in groups.get(lvl, [])
    ]

    sections = [
        summary,
        f'<div class="card"><h2>Package contents</h2><ul>{cats}</ul></div>',
        f'<div class="card"><h2>Resource dependencies</h2>{deps}</div>',
        f'<div class="card"><h2>Validation</h2>{_table(["Level", "Code", "Message"], issue_rows, "No issues.")}</div>',
    ]
    return _page(f"{m.name} {m.version} - Export Report", f"{APP_NAME} - Export Report", sections)


def build_cleanup_report_html(analysis: CleanupAnalysis) -> str:
    summary = (
        '<div class="card"><div class="row">'
        + _kv("Project", analysis.project_path)
        + _kv("Assets", analysis.total_assets)
        + _kv("Resources", analysis.total_resources)
        + _kv("Orphaned", f"{len(analysis.orphaned_resources)} ({format_size(analysis.total_orphaned_size)})")
        + _kv("Misplaced", len(analysis.misplaced_resources))
        + _kv("Empty folders", len(analysis.empty_folders))
        + "</div></div>"
    )

    orphans = _table(
        ["File", "Size"],
        [[f"<code>{_esc(o.relative_path)}</code>", _esc(o.size_display)] for o in analysis.orphaned_resources],
        "No orphaned resources.",
    )
    folders = _table(
        ["Folder", "Orphans", "Size", "Whole folder"],
        [
            [f"<code>{_esc(f.relative_path)}</code>", _esc(f.orphan_count), _esc(format_size(f.total_size)), "yes" if f.all_files_orphaned else "no"]
            for f in analysis.orphaned_folders
        ],
        "No orphaned folders.",
    )
    misplaced = _table(
        ["Current", "Suggested", "Referenced by"],
        [
            [f"<code>{_esc(m.current_path)}</code>", f"<code>{_esc(m.suggested_path)}</code>", _esc(m.referenced_by)]
            for m in analysis.misplaced_resources
        ],
        "No misplaced resources.",
    )
    empty = _table(
        ["Folder"],
        [[f"<code>{_esc(e.relative_path)}</code>"] for e in analysis.empty_folders],
        "No empty folders.",
    )
    errors = _table(["Error"], [[_esc(e)] for e in analysis.errors], "No errors.")

    sections = [
        summary,
        f'<div class="card"><h2>Orphaned resources</h2>{orphans}</div>',
        f'<div class="card"><h2>Orphaned folders</h2>{folders}</div>',
        f'<div class="card"><h2>Misplaced resources</h2>{misplaced}</div>',
        f'<div class="card"><h2>Empty folders</h2>{empty}</div>',
        f'<div class="card"><h2>Errors</h2>{errors}</div>',
    ]
    return _page("Project Cleanup Report", f"{APP_NAME} - Cleanup Report", sections)


def write_report_html(html_text: str, report_path: str) -> str:
    path = Path(report_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html_text, encoding="utf-8")
    return str(path)
