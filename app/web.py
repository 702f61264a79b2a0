"""HTML page rendering for the addon configuration page."""

from __future__ import annotations

import html
import json
from textwrap import dedent

from .config import Settings
from .manifest import AddonConfig


CONFIG_TEMPLATE = dedent(
    """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__APP_NAME__ · Configuration</title>
    <style>
        body {
            margin: 0;
            font-family: system-ui, sans-serif;
            background: #10131a;
            color: #e8eaf0;
        }
        .panel {
            max-width: 520px;
            margin: 4rem auto;
            padding: 2rem;
            border-radius: 12px;
            background: #1a1f2b;
        }
        .panel h1 { margin-top: 0; color: #ff7a59; }
        .panel p, .option small { color: #9aa3b5; }
        .option { display: block; margin: 1rem 0; }
        .option small { display: block; margin-left: 1.6rem; }
        #manifestUrl {
            width: 100%;
            padding: 0.6rem;
            border: 1px solid #2e3545;
            border-radius: 8px;
            background: #10131a;
            color: inherit;
        }
        .buttons { display: flex; gap: 0.5rem; margin-top: 1rem; }
        .buttons a, .buttons button {
            flex: 1;
            padding: 0.7rem;
            border: 0;
            border-radius: 8px;
            background: #ff7a59;
            color: #10131a;
            font-weight: 700;
            text-align: center;
            text-decoration: none;
        }
    </style>
</head>
<body>
    <main class="panel">
        <h1>__APP_NAME__</h1>
        <p>__TOTAL_ANIME__ anime across Top Rated, Season Releases, Currently Airing and Movies.</p>
        <label class="option">
            <input type="checkbox" id="excludeLongRunning" />
            Hide long-running shows
            <small>Removes titles with hundreds of episodes or that started years ago from Currently Airing.</small>
        </label>
        <label class="option">
            <input type="checkbox" id="showCounts" />
            Show counts in filters
            <small>Displays the number of titles next to each genre, season and weekday.</small>
        </label>
        <input type="text" id="manifestUrl" readonly />
        <div class="buttons">
            <a id="installLink" href="#">Install</a>
            <button type="button" id="copyButton">Copy URL</button>
        </div>
    </main>
    <script>
        const defaults = __DEFAULTS_JSON__;
        const excludeInput = document.getElementById('excludeLongRunning');
        const countsInput = document.getElementById('showCounts');
        const urlInput = document.getElementById('manifestUrl');
        const installLink = document.getElementById('installLink');

        excludeInput.checked = defaults.excludeLongRunning;
        countsInput.checked = defaults.showCounts;

        function baseUrl() {
            return (defaults.baseUrl || window.location.origin).replace(/\\/$/, '');
        }

        function refresh() {
            const segment = `excludeLongRunning=${excludeInput.checked}&showCounts=${countsInput.checked}`;
            const url = `${baseUrl()}/${encodeURIComponent(segment)}/manifest.json`;
            urlInput.value = url;
            installLink.href = url.replace(/^https?:/, 'stremio:');
        }

        excludeInput.addEventListener('change', refresh);
        countsInput.addEventListener('change', refresh);
        document.getElementById('copyButton').addEventListener('click', () => {
            navigator.clipboard.writeText(urlInput.value);
        });
        refresh();
    </script>
</body>
</html>
"""
)


def render_config_page(
    settings: Settings,
    *,
    config: AddonConfig | None = None,
    total_anime: int = 0,
    base_url: str = "",
) -> str:
    config = config or AddonConfig()
    defaults = {
        "appName": settings.app_name,
        "baseUrl": base_url.rstrip("/") or (
            str(settings.base_url).rstrip("/") if settings.base_url else ""
        ),
        "excludeLongRunning": config.exclude_long_running,
        "showCounts": config.show_counts,
    }
    defaults_json = json.dumps(defaults).replace("</", "<\\/")

    page = CONFIG_TEMPLATE
    replacements = {
        "__APP_NAME__": html.escape(settings.app_name),
        "__TOTAL_ANIME__": f"{total_anime:,}",
        "__DEFAULTS_JSON__": defaults_json,
    }
    for placeholder, value in replacements.items():
        page = page.replace(placeholder, value)
    return page
