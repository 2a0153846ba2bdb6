"""Unit tests for CLI commands."""

import typer
from typer.testing import CliRunner

from travelcms.blog import BlogStore
from travelcms.cli import app
from travelcms.database import Database

runner = CliRunner()


def create_scheduled_post(database_url: str, publish_date: str) -> int:
    db = Database(database_url)
    db.initialize()
    try:
        post = BlogStore(db).create_post(
            {
                "title": "Whale Season Opens",
                "content": "Humpbacks pass Hervey Bay from July.",
                "status": "scheduled",
                "publish_date": publish_date,
            }
        )
    finally:
        db.close()
    return post.id


class TestCLICommands:
    """Tests for CLI commands."""

    def test_cli_app_exists(self):
        assert isinstance(app, typer.Typer)

    def test_init_seeds_once(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"

        first = runner.invoke(app, ["init", "--database-url", url])
        second = runner.invoke(app, ["init", "--database-url", url])

        assert first.exit_code == 0, first.stdout
        assert "Seeded 5 categories and 10 tags" in first.stdout
        assert "Initialization complete" in first.stdout
        assert second.exit_code == 0
        assert "Seeded 0 categories and 0 tags" in second.stdout

    def test_init_no_seed(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"

        result = runner.invoke(app, ["init", "--no-seed", "-d", url])

        assert result.exit_code == 0
        assert "Seeded" not in result.stdout

    def test_init_force_recreates(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        runner.invoke(app, ["init", "-d", url])

        result = runner.invoke(app, ["init", "--force", "--no-seed", "-d", url])

        assert result.exit_code == 0
        assert "Recreated all tables" in result.stdout
        db = Database(url)
        db.initialize()
        assert db.table_counts()["blog_categories"] == 0
        db.close()

    def test_status(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        runner.invoke(app, ["init", "-d", url])

        result = runner.invoke(app, ["status", "-d", url])

        assert result.exit_code == 0
        assert "blog_categories" in result.stdout
        assert "directory_listings" in result.stdout
        assert "testing" in result.stdout

    def test_publish_scheduled(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"
        post_id = create_scheduled_post(url, "2030-01-01T08:00:00Z")

        early = runner.invoke(app, ["publish-scheduled", "--now", "2029-12-31T00:00:00Z", "-d", url])
        due = runner.invoke(app, ["publish-scheduled", "--now", "2030-01-02T00:00:00Z", "-d", url])

        assert early.exit_code == 0
        assert "Nothing due by 2029-12-31T00:00:00Z" in early.stdout
        assert due.exit_code == 0
        assert f"Published 1 post(s) due by 2030-01-02T00:00:00Z: [{post_id}]" in due.stdout

    def test_publish_scheduled_invalid_now(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'cli.db'}"

        result = runner.invoke(app, ["publish-scheduled", "--now", "yesterday", "-d", url])

        assert result.exit_code == 2
        assert "Invalid --now value" in result.stdout

    def test_metrics_catalog(self):
        result = runner.invoke(app, ["metrics"])

        assert result.exit_code == 0
        assert "Exported Metrics" in result.stdout
        assert "counter" in result.stdout
        assert "gauge" in result.stdout

    def test_metrics_raw(self):
        result = runner.invoke(app, ["metrics", "--raw"])

        assert result.exit_code == 0
        assert "# TYPE content_operations_total counter" in result.stdout
        assert "post_views_total" in result.stdout
