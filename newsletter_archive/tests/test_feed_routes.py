"""
Tests for feed routes: RSS and embed.
"""

import xml.etree.ElementTree as ET


class TestRssFeed:
    """Tests for GET /feed.xml."""

    def test_content_type(self, client):
        response = client.get("/feed.xml")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/rss+xml")

    def test_items_newest_first(self, client_with_data):
        client, _ = client_with_data
        root = ET.fromstring(client.get("/feed.xml").text)
        titles = [item.findtext("title") for item in root.find("channel").findall("item")]
        assert titles == ["Summer Picnic", "Spring Update", "Winter Recap"]


class TestEmbed:
    """Tests for GET /embed."""

    def test_returns_html_fragment(self, client_with_data):
        client, _ = client_with_data
        response = client.get("/embed")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.text.startswith('<div class="newsletter-embed">')
        assert "Summer Picnic" in response.text

    def test_limit(self, client_with_data):
        client, _ = client_with_data
        response = client.get("/embed?limit=1")
        assert "Summer Picnic" in response.text
        assert "Winter Recap" not in response.text

    def test_empty_archive(self, client):
        assert "No newsletters yet." in client.get("/embed").text
