"""
Page routes for the Produce Monitor web interface.

A single dashboard page: the live annotated stream plus the event log,
refreshed by polling the API.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

router = APIRouter()

DASHBOARD_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8">
  <title>Produce Monitor</title>
  <style>
    body { font-family: sans-serif; margin: 1rem; display: flex; gap: 1rem; }
    #log div { font-family: monospace; font-size: 16px; color: green; }
    #log div.alert { color: red; }
  </style>
</head>
<body>
  <img src="/api/stream.mjpg" alt="live view">
  <div>
    <h3 id="status">-</h3>
    <div id="log"></div>
  </div>
  <script>
    async function refresh() {
      const status = await (await fetch('/api/status')).json();
      document.getElementById('status').textContent =
        (status.running ? 'Running' : 'Stopped') + ' | FPS ' + status.fps.toFixed(1);
      const events = await (await fetch('/api/events')).json();
      const log = document.getElementById('log');
      log.innerHTML = '';
      for (const e of events.events) {
        const row = document.createElement('div');
        row.textContent = e.message;
        if (e.is_alert) row.className = 'alert';
        log.appendChild(row);
      }
    }
    setInterval(refresh, 1000);
    refresh();
  </script>
</body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
def dashboard():
    """Dashboard page."""
    return HTMLResponse(content=DASHBOARD_HTML)
