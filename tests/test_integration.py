"""Integration tests for blog post to directory listing links."""


class TestLinks:
    def test_link_is_idempotent(self, links, make_post, listing):
        post = make_post()

        assert links.link(post.id, listing.id) is True
        assert links.link(post.id, listing.id) is True

        assert len(links.list_links(post.id)) == 1
        assert [item.id for item in links.related_listings(post.id)] == [listing.id]

    def test_link_missing_side(self, links, make_post, listing):
        post = make_post()

        assert links.link(404, listing.id) is False
        assert links.link(post.id, 404) is False
        assert links.list_links() == []

    def test_unlink(self, links, make_post, listing):
        post = make_post()
        links.link(post.id, listing.id)

        assert links.unlink(post.id, listing.id) is True
        assert links.unlink(post.id, listing.id) is False
        assert links.related_listings(post.id) == []

    def test_related_listings_sorted_by_name(self, links, make_post, make_listing):
        post = make_post()
        zebra = make_listing(name="Zebra Bar")
        alpine = make_listing(name="Alpine Hut")
        links.link(post.id, zebra.id)
        links.link(post.id, alpine.id)

        assert [item.name for item in links.related_listings(post.id)] == ["Alpine Hut", "Zebra Bar"]

    def test_related_posts(self, links, make_post, listing, beach_tag):
        draft = make_post(title="Draft Guide")
        live = make_post(title="Live Guide", published=True, tags=[beach_tag.id])
        links.link(draft.id, listing.id)
        links.link(live.id, listing.id)

        assert [post.id for post in links.related_posts(listing.id)] == [live.id, draft.id]

        published = links.related_posts(listing.id, published_only=True)
        assert [post.title for post in published] == ["Live Guide"]
        assert [tag.slug for tag in published[0].tags] == ["beach"]

    def test_list_links_names(self, links, make_post, listing):
        post = make_post(title="Cairns Food Crawl")
        links.link(post.id, listing.id)

        (link,) = links.list_links()

        assert link.blog_post_title == "Cairns Food Crawl"
        assert link.directory_listing_name == "Reef Cafe"

    def test_deleting_post_removes_links(self, blog, links, make_post, listing):
        post = make_post()
        links.link(post.id, listing.id)

        blog.delete_post(post.id)

        assert links.related_posts(listing.id) == []
        assert links.list_links() == []
