"""
Tests for content population.

Uses the fixture content model over an in-memory DuckDB database.
"""

import unittest
from unittest.mock import patch

from pagewright.exceptions import PopulationError
from pagewright.models import ContentType, RelationDefinition
from pagewright.population import ContentPopulator

from tests.content_fixtures import ContentTestCase


class TestScalarPopulation(ContentTestCase):
    """Test direct field writes."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.populator = ContentPopulator(self.store)

    def test_scalars_written_and_persisted(self):
        """Test writing declared fields and skipping the rest."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {
            "Title": "Composting",
            "Summary": "How to start",
            "Featured": 1,
            "NotAField": "ignored",
            "MetaDescription": None,
            "Category": "",
        })

        self.assertTrue(page.exists())
        loaded = self.store.get(page.identity())
        self.assertEqual(loaded.read("Title"), "Composting")
        self.assertEqual(loaded.read("Summary"), "How to start")
        self.assertEqual(loaded.read("Featured"), 1)
        self.assertIsNone(loaded.read("MetaDescription"))
        self.assertIsNone(loaded.read("Category"))

    def test_empty_values_do_not_overwrite(self):
        """Test that empty values are no-ops."""
        page = self.store.create("Page")
        page.write("Title", "Keep me")

        self.populator.populate(page, {"Title": "", "Content": None})

        self.assertEqual(page.read("Title"), "Keep me")

    def test_scalar_shape_mismatch_skipped(self):
        """Test that structured values are not written to scalar fields."""
        page = self.store.create("Page")

        self.populator.populate(page, {"Title": {"text": "nested"}, "Content": "<p>ok</p>"})

        self.assertIsNone(page.read("Title"))
        self.assertEqual(page.read("Content"), "<p>ok</p>")

    def test_idempotent_without_persist(self):
        """Test that repeating a scalar population yields the same values."""
        page = self.store.create("BlogPage")
        values = {"Title": "Hello", "Summary": "World", "Featured": 0}

        self.populator.populate(page, values, persist=False)
        first = page.to_dict()
        self.populator.populate(page, values, persist=False)

        self.assertEqual(page.to_dict(), first)
        self.assertFalse(page.exists())
        self.assertEqual(self.db.count_objects(), 0)

    def test_non_mapping_tree_ignored(self):
        """Test that a tree which is not a mapping changes nothing."""
        page = self.store.create("Page")

        with self.assertLogs(level="WARNING"):
            result = self.populator.populate(page, ["not", "a", "mapping"])

        self.assertIs(result, page)
        self.assertFalse(page.exists())


class TestRelationPopulation(ContentTestCase):
    """Test dispatch on relation cardinality."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.populator = ContentPopulator(self.store)

    def test_cardinality_dispatch(self):
        """Test one single relation, owned items and blocks in one tree."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {
            "Title": "Post",
            "Author": {"Name": "Ann", "Bio": "Gardener"},
            "FAQs": [
                {"Question": "Q1", "Answer": "A1"},
                {"Question": "Q2", "Answer": "A2"},
                {"Question": "Q3"},
            ],
            "ElementalArea": [
                {"BlockType": "TextBlock", "Heading": "First"},
                {"BlockType": "App.Blocks.ImageBlock", "Caption": "Second"},
            ],
        })

        author = page.related("Author")
        self.assertEqual(author.read("Name"), "Ann")
        self.assertEqual(self.db.count_objects("Person"), 1)

        faqs = page.children("FAQs")
        self.assertEqual([faq.read("Question") for faq in faqs], ["Q1", "Q2", "Q3"])
        self.assertTrue(all(faq.read("BlogPageID") == page.identity() for faq in faqs))

        area = page.related("ElementalArea")
        blocks = area.children("Elements")
        self.assertEqual([block.get_type() for block in blocks], ["App.Blocks.TextBlock", "App.Blocks.ImageBlock"])
        self.assertEqual([block.read("Sort") for block in blocks], [1, 2])
        self.assertEqual(blocks[0].read("Heading"), "First")
        self.assertEqual(blocks[1].read("Caption"), "Second")

    def test_associated_many_relation(self):
        """Test join-table items are added through the relation."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"Tags": [{"Title": "garden"}, {"Title": "soil"}]})

        self.assertEqual([tag.read("Title") for tag in page.children("Tags")], ["garden", "soil"])
        self.assertEqual(self.db.get_associations(page.identity(), "Tags"), [t.identity() for t in page.children("Tags")])

    def test_nested_relations(self):
        """Test related objects populated recursively."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"Author": {"Name": "Ann", "Mentor": {"Name": "Bea", "Mentor": {"Name": "Cy"}}}})

        mentor = page.related("Author").related("Mentor")
        self.assertEqual(mentor.read("Name"), "Bea")
        self.assertEqual(mentor.related("Mentor").read("Name"), "Cy")

    def test_relation_shape_mismatches_skipped(self):
        """Test malformed relation values are skipped item by item."""
        page = self.store.create("BlogPage")

        with self.assertLogs(level="WARNING"):
            self.populator.populate(page, {
                "Title": "Still written",
                "Author": "just a name",
                "FAQs": {"Question": "not a list"},
                "Tags": ["plain", {"Title": "kept"}, 3],
            })

        self.assertEqual(page.read("Title"), "Still written")
        self.assertIsNone(page.related("Author"))
        self.assertEqual(page.children("FAQs"), [])
        self.assertEqual([tag.read("Title") for tag in page.children("Tags")], ["kept"])

    def test_unresolvable_owner_key_skips_relation(self):
        """Test owned relations whose items cannot point back."""
        self.registry.register_type(ContentType(
            name="Gallery",
            relations=[RelationDefinition(name="Items", kind="has_many", target="Tag")]
        ))
        gallery = self.store.create("Gallery")

        with self.assertLogs(level="WARNING"):
            self.populator.populate(gallery, {"Items": [{"Title": "x"}]})

        self.assertEqual(self.db.count_objects("Tag"), 0)

    def test_replace_relations(self):
        """Test replacing versus appending owned items."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"FAQs": [{"Question": "Old"}]})
        self.populator.populate(page, {"FAQs": [{"Question": "New"}]})
        self.assertEqual([faq.read("Question") for faq in page.children("FAQs")], ["Old", "New"])

        self.populator.populate(page, {"FAQs": [{"Question": "Only"}]}, replace_relations=True)
        self.assertEqual([faq.read("Question") for faq in page.children("FAQs")], ["Only"])

    def test_replace_associations(self):
        """Test replacing join-table items."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"Tags": [{"Title": "a"}]})
        self.populator.populate(page, {"Tags": [{"Title": "b"}]}, replace_relations=True)

        self.assertEqual([tag.read("Title") for tag in page.children("Tags")], ["b"])


class TestBlockPopulation(ContentTestCase):
    """Test block-area population."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.populator = ContentPopulator(self.store)

    def blocks_of(self, content_object, area_name):
        area = content_object.related(area_name)
        return area.children("Elements") if area is not None else []

    def test_unknown_tag_skipped(self):
        """Test one valid block created and an untagged entry skipped."""
        page = self.store.create("LandingPage")

        with self.assertLogs(level="WARNING"):
            self.populator.populate(page, {"Blocks": [{"BlockType": "TextBlock", "Heading": "Hi"}, {"UnknownTag": "x"}]})

        blocks = self.blocks_of(page, "Blocks")
        self.assertEqual(len(blocks), 1)
        self.assertEqual(blocks[0].read("Heading"), "Hi")
        self.assertEqual(blocks[0].read("Sort"), 1)

    def test_disallowed_and_unknown_types_skipped(self):
        """Test entries whose type is not allowed in the area."""
        page = self.store.create("LandingPage")

        with self.assertLogs(level="WARNING"):
            self.populator.populate(page, {"Blocks": [
                {"BlockType": "ImageBlock", "Caption": "not allowed"},
                {"BlockType": "Page"},
                {"BlockType": "NoSuchBlock"},
                "not a mapping",
                {"BlockType": "TextBlock", "Heading": "kept"},
            ]})

        blocks = self.blocks_of(page, "Blocks")
        self.assertEqual([block.read("Heading") for block in blocks], ["kept"])
        self.assertEqual(blocks[0].read("Sort"), 1)

    def test_type_tag_order(self):
        """Test that the first present tag key wins and tags are not written."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"ElementalArea": [
            {"ClassName": "App\\Blocks\\ImageBlock", "BlockType": "TextBlock", "Heading": "wins"},
            {"type": "App-Blocks-ImageBlock", "Caption": "by type"},
        ]})

        blocks = self.blocks_of(page, "ElementalArea")
        self.assertEqual([block.get_type() for block in blocks], ["App.Blocks.TextBlock", "App.Blocks.ImageBlock"])
        self.assertEqual(blocks[0].read("Heading"), "wins")

    def test_extra_type_tag_keys(self):
        """Test configured extra tag keys."""
        self.settings.extra_type_tag_keys = ["Kind"]
        page = self.store.create("LandingPage")

        ContentPopulator(self.store, self.settings).populate(page, {"Blocks": [{"Kind": "TextBlock", "Heading": "x"}]})

        self.assertEqual(len(self.blocks_of(page, "Blocks")), 1)

    def test_nested_block_areas(self):
        """Test blocks with their own block area."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"ElementalArea": [
            {"BlockType": "ColumnsBlock", "Title": "Two columns", "Columns": [
                {"Type": "TextBlock", "Heading": "Left"},
                {"Type": "ImageBlock", "Caption": "Right"},
                {"Type": "ColumnsBlock"},
            ]},
        ]})

        columns = self.blocks_of(page, "ElementalArea")[0]
        inner = self.blocks_of(columns, "Columns")
        self.assertEqual(columns.read("Title"), "Two columns")
        self.assertEqual([block.read("Sort") for block in inner], [1, 2])
        self.assertEqual(inner[0].read("Heading"), "Left")

    def test_wrapped_block_lists(self):
        """Test block lists wrapped in a mapping."""
        page = self.store.create("BlogPage")

        self.populator.populate(page, {"ElementalArea": {"blocks": [{"BlockType": "TextBlock", "Heading": "a"}]}})
        self.populator.populate(page, {"ElementalArea": {
            "first": {"BlockType": "TextBlock", "Heading": "b"},
            "second": {"BlockType": "TextBlock", "Heading": "c"},
        }})

        self.assertEqual([block.read("Heading") for block in self.blocks_of(page, "ElementalArea")], ["a", "b", "c"])

    def test_block_area_reused(self):
        """Test an existing area is kept across populations."""
        page = self.store.create("LandingPage")

        self.populator.populate(page, {"Blocks": [{"BlockType": "TextBlock", "Heading": "a"}]})
        area_id = page.read("BlocksID")
        self.populator.populate(page, {"Blocks": [{"BlockType": "TextBlock", "Heading": "b"}]}, replace_relations=True)

        self.assertEqual(page.read("BlocksID"), area_id)
        self.assertEqual([block.read("Heading") for block in self.blocks_of(page, "Blocks")], ["b"])
        self.assertEqual(self.db.count_objects("ElementalArea"), 1)

    def test_unusable_block_value_skipped(self):
        """Test block-area values with no usable shape."""
        page = self.store.create("LandingPage")

        with self.assertLogs(level="WARNING"):
            self.populator.populate(page, {"Blocks": "text instead of blocks"})

        self.assertIsNone(page.related("Blocks"))


class TestTransactions(ContentTestCase):
    """Test all-or-nothing population."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.populator = ContentPopulator(self.store)

    def test_failure_rolls_back_everything(self):
        """Test that a failing write leaves nothing committed."""
        page = self.store.create("BlogPage")
        page.write("Title", "Before")

        with patch.object(self.db, "add_association", side_effect=RuntimeError("disk full")):
            with self.assertLogs(level="ERROR"):
                with self.assertRaises(PopulationError) as context:
                    self.populator.populate(page, {
                        "Title": "After",
                        "Author": {"Name": "Ann"},
                        "FAQs": [{"Question": "Q"}],
                        "Tags": [{"Title": "t"}],
                    })

        self.assertIsInstance(context.exception.__cause__, RuntimeError)
        self.assertEqual(context.exception.content_type, "BlogPage")
        self.assertEqual(self.db.count_objects(), 0)
        self.assertFalse(page.exists())
        self.assertEqual(page.read("Title"), "Before")
        self.assertIsNone(page.read("AuthorID"))
        self.assertFalse(self.db.in_transaction)

    def test_failure_keeps_existing_object(self):
        """Test rollback on an object that was already stored."""
        page = self.store.create("BlogPage")
        page.write("Title", "Stored")
        page.persist()
        page_id = page.identity()

        with patch.object(self.db, "add_association", side_effect=RuntimeError("disk full")):
            with self.assertRaises(PopulationError):
                self.populator.populate(page, {"Title": "Changed", "Tags": [{"Title": "t"}]})

        self.assertEqual(page.identity(), page_id)
        self.assertEqual(page.read("Title"), "Stored")
        self.assertEqual(self.store.get(page_id).read("Title"), "Stored")
        self.assertEqual(self.db.count_objects(), 1)


if __name__ == '__main__':
    unittest.main()
