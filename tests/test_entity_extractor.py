import pytest

from context_engine.domain.context.memory.entity_extractor import EntityExtractor, ResultShape, infer_type


class TestEntityExtractor:
    """Shape strategies tried in priority order"""

    @pytest.fixture
    def extractor(self):
        return EntityExtractor()

    def test_nested_resource(self, extractor):
        output = {"success": True, "post": {"id": "post-1", "title": "Launch", "slug": "launch"}}

        assert extractor.classify(output) == ResultShape.NESTED
        [post] = extractor.extract("cms_createPost", output)
        assert (post.type, post.id, post.name, post.slug) == ("post", "post-1", "Launch", "launch")

    def test_nested_wins_over_single(self, extractor):
        output = {"success": True, "id": "outer", "name": "Outer", "page": {"id": "page-1", "name": "Inner"}}
        [page] = extractor.extract("cms_updatePage", output)
        assert page.id == "page-1"

    def test_single_resource(self, extractor):
        [section] = extractor.extract("cms_getSection", {"id": "s1", "sectionKey": "hero"})

        assert section.type == "section"
        assert section.name == "hero"

    def test_result_type_field_overrides_tool_name(self, extractor):
        [entity] = extractor.extract("cms_getPage", {"id": "c1", "name": "Blog", "type": "Collection"})
        assert entity.type == "collection"

    def test_search_matches(self, extractor):
        output = {
            "matches": [
                {"id": "p1", "name": "Home", "type": "page"},
                {"id": "s1", "sectionName": "Hero", "type": "section"},
                {"id": "x1", "title": "Other"},
                {"id": "x2", "title": "Too many"},
            ]
        }
        entities = extractor.extract("search", output)

        assert [(e.type, e.name) for e in entities] == [("page", "Home"), ("section", "Hero"), ("resource", "Other")]

    def test_top_level_list(self, extractor):
        output = [{"id": f"i{n}", "name": f"Image {n}"} for n in range(7)] + [{"id": "no-name"}]
        entities = extractor.extract("cms_listImages", output)

        assert extractor.classify(output) == ResultShape.LIST
        assert len(entities) == 5
        assert {e.type for e in entities} == {"image"}

    def test_paginated(self, extractor):
        output = {"data": [{"id": "e1", "title": "Entry"}, {"id": "e2"}], "total": 2}
        [entry] = extractor.extract("cms_listEntries", output)

        assert extractor.classify(output) == ResultShape.PAGINATED
        assert entry.type == "entry"

    def test_items(self, extractor):
        output = {"items": [{"id": "m1", "name": "Logo"}]}
        [media] = extractor.extract("cms_findMedia", output)
        assert media.type == "media"

    def test_posts_list(self, extractor):
        output = {"posts": [{"id": "b1", "slug": "first"}, {"title": "no id"}]}
        [post] = extractor.extract("blog_feed", output)

        assert extractor.classify(output) == ResultShape.POSTS
        assert (post.type, post.name) == ("post", "first")

    def test_unnamed_fallback(self, extractor):
        [post] = extractor.extract("feed", {"posts": [{"id": "b1"}]})
        assert post.name == "Unnamed post"

    def test_unrecognised_output(self, extractor):
        assert extractor.classify("plain text") is None
        assert extractor.extract("cms_getPage", "plain text") == []
        assert extractor.extract("cms_getPage", {"error": "boom"}) == []

    @pytest.mark.parametrize(
        "tool_name, expected",
        [
            ("cms_getPageSection", "section"),
            ("cms_listPages", "page"),
            ("cms_deleteCollection", "collection"),
            ("cms_publishEntries", "entry"),
            ("cms_findWidget", "widget"),
            ("web_search", "resource"),
        ],
    )
    def test_infer_type_from_tool_name(self, tool_name, expected):
        assert infer_type(tool_name, {}) == expected
