from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from pages import FakeFetcher, article_html, image_figure, listing_html

from postscraper import contentstore
from postscraper.config import RunConfig
from postscraper.contentstore import FileContentStore
from postscraper.errors import ContentStoreError
from postscraper.models import DoneReason
from postscraper.services import orchestrator
from postscraper.services.orchestrator import CrawlOrchestrator

LISTING = "https://news.example.com/world/natural-disasters"
PAGE_TWO = "https://news.example.com/world/natural-disasters?page=2"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 64


def article_url(index: int) -> str:
    return f"https://news.example.com/world/story-{index}"


def article_pages(count: int) -> dict[str, str]:
    return {
        article_url(index): article_html(f"Story {index}", timestamp=str(1700000000000 + index * 1000))
        for index in range(1, count + 1)
    }


def make_orchestrator(fetcher, store, tmp_path: Path, limit: int) -> CrawlOrchestrator:
    return CrawlOrchestrator(fetcher, store, limit=limit, temp_dir=tmp_path / "tmp")


def test_stops_when_pagination_is_exhausted(tmp_path: Path) -> None:
    pages = {LISTING: listing_html([article_url(i) for i in range(1, 4)]), **article_pages(3)}
    store = FileContentStore(tmp_path / "store")

    result = make_orchestrator(FakeFetcher(pages), store, tmp_path, limit=5).run(LISTING)

    assert result.reason is DoneReason.PAGINATION_EXHAUSTED
    assert result.scraped_count == 3
    assert result.listing_pages == 1
    assert [article.title for article in store.list_articles()] == ["Story 1", "Story 2", "Story 3"]


def test_limit_stops_before_fetching_further_articles(tmp_path: Path) -> None:
    pages = {
        LISTING: listing_html([article_url(i) for i in range(1, 6)], next_url=PAGE_TWO),
        **article_pages(5),
    }
    fetcher = FakeFetcher(pages)
    store = FileContentStore(tmp_path / "store")

    result = make_orchestrator(fetcher, store, tmp_path, limit=2).run(LISTING)

    assert result.reason is DoneReason.LIMIT_REACHED
    assert result.scraped_count == 2
    assert len(store.list_articles()) == 2
    assert fetcher.requested == [LISTING, article_url(1), article_url(2)]


def test_duplicate_finishes_page_but_fetches_no_new_listing(tmp_path: Path) -> None:
    pages = {
        LISTING: listing_html([article_url(i) for i in range(1, 4)], next_url=PAGE_TWO),
        PAGE_TWO: listing_html([article_url(9)]),
        **article_pages(3),
    }
    fetcher = FakeFetcher(pages)
    store = FileContentStore(tmp_path / "store")
    store.create_article("Story 2", datetime.fromtimestamp(1700000002, UTC), "<p>old</p>")

    result = make_orchestrator(fetcher, store, tmp_path, limit=10).run(LISTING)

    assert result.reason is DoneReason.DUPLICATE_FOUND
    assert result.duplicate_found is True
    assert result.scraped_count == 2
    assert article_url(3) in fetcher.requested
    assert PAGE_TWO not in fetcher.requested
    assert sorted(article.title for article in store.list_articles()) == ["Story 1", "Story 2", "Story 3"]


def test_failed_media_download_drops_only_that_figure(tmp_path: Path) -> None:
    figures = image_figure("https://cdn.example.com/ok.jpg", caption="Kept") + image_figure(
        "https://cdn.example.com/broken.jpg", caption="Dropped"
    )
    pages = {
        LISTING: listing_html([article_url(1)]),
        article_url(1): article_html("Story 1", figures=figures),
    }
    fetcher = FakeFetcher(pages, media={"https://cdn.example.com/ok.jpg": JPEG_BYTES})
    store = FileContentStore(tmp_path / "store")

    result = make_orchestrator(fetcher, store, tmp_path, limit=5).run(LISTING)

    assert result.scraped_count == 1
    body = store.get_article(result.article_ids[0]).body
    assert "Kept" in body
    assert "Dropped" not in body
    assert "broken.jpg" not in body
    assert "data-media-slot" not in body


def test_featured_image_becomes_cover(tmp_path: Path) -> None:
    pages = {
        LISTING: listing_html([article_url(1)]),
        article_url(1): article_html("Story 1", featured=image_figure("https://cdn.example.com/lead.jpg")),
    }
    fetcher = FakeFetcher(pages, media={"https://cdn.example.com/lead.jpg": JPEG_BYTES})
    store = FileContentStore(tmp_path / "store")

    result = make_orchestrator(fetcher, store, tmp_path, limit=5).run(LISTING)

    assert store.get_article(result.article_ids[0]).cover_media_id is not None


def test_follows_next_page_links(tmp_path: Path) -> None:
    pages = {
        LISTING: listing_html([article_url(1)], next_url="?page=2"),
        PAGE_TWO: listing_html(["/world/story-2"]),
        **article_pages(2),
    }
    fetcher = FakeFetcher(pages)

    result = make_orchestrator(fetcher, FileContentStore(tmp_path / "store"), tmp_path, limit=5).run(LISTING)

    assert result.listing_pages == 2
    assert result.scraped_count == 2
    assert result.reason is DoneReason.PAGINATION_EXHAUSTED


def test_listing_fetch_failure_ends_run(tmp_path: Path) -> None:
    result = make_orchestrator(
        FakeFetcher({}), FileContentStore(tmp_path / "store"), tmp_path, limit=5
    ).run(LISTING)

    assert result.reason is DoneReason.LISTING_FETCH_FAILED
    assert result.completed is True
    assert result.scraped_count == 0


def test_broken_articles_are_skipped(tmp_path: Path) -> None:
    pages = {
        LISTING: listing_html([article_url(1), article_url(2), article_url(3)]),
        article_url(2): article_html("Story 2", with_container=False),
        article_url(3): article_html("Story 3"),
    }

    result = make_orchestrator(
        FakeFetcher(pages), FileContentStore(tmp_path / "store"), tmp_path, limit=5
    ).run(LISTING)

    assert result.scraped_count == 1
    assert result.skipped_urls == [article_url(1), article_url(2)]


def test_store_failure_is_run_fatal(tmp_path: Path) -> None:
    class BrokenStore(FileContentStore):
        def find_article(self, title, published_at):
            raise ContentStoreError("database unavailable")

    pages = {LISTING: listing_html([article_url(1), article_url(2)]), **article_pages(2)}
    fetcher = FakeFetcher(pages)

    result = make_orchestrator(fetcher, BrokenStore(tmp_path / "store"), tmp_path, limit=5).run(LISTING)

    assert result.reason is DoneReason.STORE_FAILED
    assert article_url(2) not in fetcher.requested


def test_run_uses_store_folder_for_temporary_files(tmp_path: Path, monkeypatch) -> None:
    pages = {LISTING: listing_html([article_url(1)]), **article_pages(1)}
    fetcher = FakeFetcher(pages)
    monkeypatch.setattr(orchestrator.DocumentFetcher, "from_config", classmethod(lambda cls, config, session=None: fetcher))

    config = RunConfig(scrapping_url=LISTING, posts_num=3, store_root=tmp_path / "store")
    result = orchestrator.run(config)

    assert result.scraped_count == 1
    assert (tmp_path / "store" / "tmp").is_dir()


def test_malformed_article_link_is_skipped(tmp_path: Path) -> None:
    pages = {LISTING: listing_html(["http://[broken/story", article_url(1)]), **article_pages(1)}
    fetcher = FakeFetcher(pages)

    result = make_orchestrator(fetcher, FileContentStore(tmp_path / "store"), tmp_path, limit=5).run(LISTING)

    assert result.reason is DoneReason.PAGINATION_EXHAUSTED
    assert result.scraped_count == 1
    assert result.skipped_urls == ["http://[broken/story"]
    assert fetcher.requested == [LISTING, article_url(1)]


def test_malformed_next_link_ends_pagination(tmp_path: Path) -> None:
    pages = {LISTING: listing_html([article_url(1)], next_url="http://[broken/?page=2"), **article_pages(1)}

    result = make_orchestrator(
        FakeFetcher(pages), FileContentStore(tmp_path / "store"), tmp_path, limit=5
    ).run(LISTING)

    assert result.reason is DoneReason.PAGINATION_EXHAUSTED
    assert result.scraped_count == 1


def test_failed_attach_and_cover_writes_keep_article(tmp_path: Path, monkeypatch) -> None:
    write_json = contentstore._write_json

    def failing_write(path, payload):
        if path.name == "media.json" and any(entry["parent_id"] for entry in payload.values()):
            raise OSError("disk full")
        if isinstance(payload, dict) and payload.get("cover_media_id"):
            raise OSError("disk full")
        write_json(path, payload)

    monkeypatch.setattr(contentstore, "_write_json", failing_write)
    pages = {
        LISTING: listing_html([article_url(1)]),
        article_url(1): article_html(
            "Story 1",
            featured=image_figure("https://cdn.example.com/lead.jpg"),
            figures=image_figure("https://cdn.example.com/inline.jpg"),
        ),
    }
    fetcher = FakeFetcher(
        pages,
        media={"https://cdn.example.com/lead.jpg": JPEG_BYTES, "https://cdn.example.com/inline.jpg": JPEG_BYTES},
    )
    store = FileContentStore(tmp_path / "store")

    result = make_orchestrator(fetcher, store, tmp_path, limit=5).run(LISTING)

    assert result.reason is DoneReason.PAGINATION_EXHAUSTED
    assert result.scraped_count == 1
    article = store.get_article(result.article_ids[0])
    assert article.cover_media_id is None
    assert "data-media-id" in article.body


def test_unusable_temp_dir_fails_run(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    fetcher = FakeFetcher({LISTING: listing_html([article_url(1)]), **article_pages(1)})

    result = CrawlOrchestrator(
        fetcher, FileContentStore(tmp_path / "store"), limit=5, temp_dir=blocker / "tmp"
    ).run(LISTING)

    assert result.reason is DoneReason.STORE_FAILED
    assert result.scraped_count == 0
    assert fetcher.requested == []
