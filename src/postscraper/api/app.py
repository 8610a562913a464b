"""FastAPI application entrypoint."""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from postscraper.api.routes import JobRegistry, router

INDEX_HTML = """
<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Post Scraper Settings</title>
    <style>
      body {
        margin: 0;
        padding: 40px 56px;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
        color: #1d2327;
        background: #f0f0f1;
      }

      form {
        display: grid;
        grid-template-columns: 200px minmax(240px, 420px);
        gap: 14px 24px;
        align-items: center;
      }

      input {
        padding: 6px 8px;
        font-size: 0.95rem;
      }

      .actions {
        grid-column: 1 / span 2;
        display: flex;
        gap: 12px;
        align-items: center;
      }

      button {
        border: none;
        border-radius: 4px;
        padding: 8px 18px;
        background: #2271b1;
        color: white;
        cursor: pointer;
      }

      button:disabled {
        opacity: 0.6;
        cursor: wait;
      }

      .status {
        min-height: 20px;
        font-weight: 600;
      }
    </style>
  </head>
  <body>
    <h1>Post Scraper Settings</h1>
    <form id="settings">
      <label for="scrapping_url">Scrapping URL</label>
      <input id="scrapping_url" name="scrapping_url" type="text" />
      <label for="posts_num">Scrapping Posts Count</label>
      <input id="posts_num" name="posts_num" type="text" />
      <label for="schedule">Scrapping Schedule</label>
      <input id="schedule" name="schedule" type="text" />
      <div class="actions">
        <button type="submit">Save Changes</button>
        <button type="button" id="scrape">Scrape</button>
        <span class="status" id="status"></span>
      </div>
    </form>
    <script>
      const form = document.getElementById("settings");
      const status = document.getElementById("status");
      const fields = ["scrapping_url", "posts_num", "schedule"];

      async function loadSettings() {
        const response = await fetch("/api/settings");
        const settings = await response.json();
        for (const field of fields) {
          form.elements[field].value = settings[field] ?? "";
        }
      }

      async function pollJob(jobId) {
        const response = await fetch(`/api/scrape/${jobId}`);
        const job = await response.json();
        if (job.status === "queued" || job.status === "running") {
          status.textContent = `Scraping (${job.status})...`;
          setTimeout(() => pollJob(jobId), 2000);
          return;
        }
        const count = job.result ? job.result.scraped_count : 0;
        status.textContent = `Scrape ${job.status}: ${count} new posts`;
        document.getElementById("scrape").disabled = false;
      }

      form.addEventListener("submit", async (event) => {
        event.preventDefault();
        const payload = {};
        for (const field of fields) {
          payload[field] = form.elements[field].value;
        }
        const response = await fetch("/api/settings", {
          method: "PUT",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify(payload),
        });
        status.textContent = response.ok ? "Settings saved." : "Settings are invalid.";
      });

      document.getElementById("scrape").addEventListener("click", async (event) => {
        event.target.disabled = true;
        const response = await fetch("/api/scrape", { method: "POST" });
        if (!response.ok) {
          status.textContent = "Could not start scraping.";
          event.target.disabled = false;
          return;
        }
        const accepted = await response.json();
        pollJob(accepted.job_id);
      });

      loadSettings();
    </script>
  </body>
</html>
"""


def create_app(
    settings_path: Path | str | None = None,
    store_root: Path | str | None = None,
) -> FastAPI:
    app = FastAPI(title="Post Scraper", description="Listing page scraper API")
    app.state.settings_path = Path(settings_path) if settings_path else None
    app.state.store_root = Path(store_root) if store_root else None
    app.state.jobs = JobRegistry()
    app.include_router(router, prefix="/api")

    @app.get("/", response_class=HTMLResponse)
    async def index() -> str:
        return INDEX_HTML

    return app


app = create_app()
