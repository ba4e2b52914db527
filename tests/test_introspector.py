"""
Tests for schema introspection.

Covers content field filtering, the relation inclusion rules, depth bounds on
cyclic models, block-area discovery and the cached structure lookup.
"""

import unittest
from datetime import datetime, timedelta
from unittest.mock import patch

from pagewright.cache import StructureCache
from pagewright.models import ContentType, FieldKind, RelationCardinality, RelationDefinition
from pagewright.structure import SchemaIntrospector

from tests.content_fixtures import ContentTestCase, make_registry, make_settings


def find(tree, name):
    for descriptor in tree:
        if descriptor.name == name:
            return descriptor
    return None


class TestScalarFields(unittest.TestCase):
    """Test which scalar fields become content fields."""

    def setUp(self):
        """Set up test fixtures."""
        self.registry = make_registry()
        self.introspector = SchemaIntrospector(self.registry)

    def test_field_order_and_filtering(self):
        """Test exclusions, the type allow-list and first-match-wins."""
        tree = self.introspector.introspect_type("BlogPage")
        scalars = [d.name for d in tree if d.kind == FieldKind.SCALAR]

        self.assertEqual(scalars, ["Title", "MetaDescription", "Summary", "Category", "Featured"])

    def test_editor_field_wins(self):
        """Test that the editor definition decides title and type."""
        title = find(self.introspector.introspect_type("Page"), "Title")

        self.assertEqual(title.title, "Page name")
        self.assertEqual(title.value_type, "text")

    def test_derived_titles_and_types(self):
        """Test titles derived from names and scalar subtypes."""
        meta = find(self.introspector.introspect_type("Page"), "MetaDescription")

        self.assertEqual(meta.title, "Meta description")
        self.assertEqual(meta.value_type, "long_text")
        self.assertIsNone(meta.options)

    def test_choice_and_boolean_options(self):
        """Test options of enum and boolean fields."""
        tree = self.introspector.introspect_type("BlogPage")

        self.assertEqual(find(tree, "Category").options, {"News": "News", "Guide": "Guide", "Opinion": "Opinion"})
        self.assertEqual(find(tree, "Featured").options, {"No": 0, "Yes": 1})

    def test_explicit_options_win(self):
        """Test that declared options replace derived ones."""
        self.registry.register_type(ContentType(
            name="Poll",
            fields=[{"name": "Answer", "field_type": "DropdownField", "options": {"Yes please": "y", "No thanks": "n"}}]
        ))

        answer = find(self.introspector.introspect_type("Poll"), "Answer")

        self.assertEqual(answer.value_type, "choice")
        self.assertEqual(answer.options, {"Yes please": "y", "No thanks": "n"})


class TestRelations(unittest.TestCase):
    """Test relation inclusion and description."""

    def setUp(self):
        """Set up test fixtures."""
        self.registry = make_registry()
        self.introspector = SchemaIntrospector(self.registry)

    def test_relation_order_and_kinds(self):
        """Test that relations follow scalars and block areas come last."""
        tree = self.introspector.introspect_type("BlogPage")
        names = [d.name for d in tree]

        self.assertEqual(names[-4:], ["Author", "FAQs", "Tags", "ElementalArea"])
        self.assertEqual(find(tree, "Author").kind, FieldKind.RELATION_SINGLE)
        self.assertEqual(find(tree, "FAQs").cardinality, RelationCardinality.MULTI_OWNED)
        self.assertEqual(find(tree, "Tags").cardinality, RelationCardinality.MULTI_ASSOCIATED)
        self.assertEqual(find(tree, "ElementalArea").kind, FieldKind.BLOCK_AREA)

    def test_relations_excluded_by_default(self):
        """Test that relations without an inclusion rule never appear."""
        tree = self.introspector.introspect_type("BlogPage")

        self.assertIsNone(find(tree, "Sponsor"))
        self.assertIsNone(find(tree, "CreatedBy"))

        faqs = find(tree, "FAQs")
        self.assertIsNone(find(faqs.children, "BlogPage"))

    def test_nothing_included_without_rules(self):
        """Test the exclusion default for every non-area relation of the model."""
        introspector = SchemaIntrospector(make_registry(make_settings(included_relationship_types=[])))

        for type_name in ["BlogPage", "Person", "FAQItem", "LandingPage"]:
            tree = introspector.introspect_type(type_name)
            relations = [d.name for d in tree if d.is_relation]
            self.assertEqual(relations, [], type_name)

    def test_specific_relation_included(self):
        """Test inclusion by owner type and relation name."""
        settings = make_settings(included_specific_relations=["BlogPage.Sponsor"])
        introspector = SchemaIntrospector(make_registry(settings))

        tree = introspector.introspect_type("BlogPage")

        self.assertEqual(find(tree, "Sponsor").value_type, "Company")
        self.assertIsNone(find(tree, "CreatedBy"))
        self.assertIsNone(find(introspector.introspect_type("Page"), "Sponsor"))

    def test_specific_relation_overrides_system_exclusion(self):
        """Test that an explicit pair wins over an excluded system type."""
        settings = make_settings(included_specific_relations=["BlogPage.CreatedBy"])
        introspector = SchemaIntrospector(make_registry(settings))

        self.assertIsNotNone(find(introspector.introspect_type("BlogPage"), "CreatedBy"))

    def test_specific_parent_relation_included(self):
        """Test that a relation named Parent is included when named explicitly."""
        registry = make_registry(make_settings(included_specific_relations=["Category.Parent"]))
        registry.register_type(ContentType(
            name="Category",
            fields=[{"name": "Title", "field_type": "Varchar(255)"}],
            relations=[RelationDefinition(name="Parent", kind="has_one", target="Category")]
        ))

        tree = SchemaIntrospector(registry).introspect_type("Category")

        self.assertEqual([d.name for d in tree], ["Title", "Parent"])
        self.assertEqual(find(tree, "Parent").value_type, "Category")

    def test_block_parent_link_excluded(self):
        """Test that a block's link back to its area is never described."""
        settings = make_settings(
            included_relationship_types=["ElementalArea"],
            included_specific_relations=["BaseElement.Parent"]
        )
        introspector = SchemaIntrospector(make_registry(settings))

        self.assertIsNone(find(introspector.introspect_type("App.Blocks.TextBlock"), "Parent"))

    def test_inherited_type_match(self):
        """Test is-a matching of included relationship types."""
        settings = make_settings(included_relationship_types=["Page"])
        introspector = SchemaIntrospector(make_registry(settings))

        faq = introspector.introspect_type("FAQItem")

        self.assertEqual(find(faq, "BlogPage").value_type, "BlogPage")

    def test_relation_description_uses_labels(self):
        """Test relationship labels in descriptions."""
        tree = self.introspector.introspect_type("BlogPage")

        self.assertEqual(find(tree, "Author").description, "Single related item (Person)")
        self.assertEqual(find(tree, "FAQs").description, "Multiple related items (FAQItem)")

    def test_unresolvable_target_skipped_with_warning(self):
        """Test that unknown relation targets are logged and skipped."""
        with self.assertLogs(level="WARNING") as logs:
            tree = self.introspector.introspect_type("Person")

        self.assertIsNone(find(tree, "Missing"))
        self.assertIsNotNone(find(tree, "Mentor"))
        self.assertTrue(any("NoSuchType" in message for message in logs.output))

    def test_unknown_type_returns_empty_tree(self):
        """Test that introspection never raises."""
        with self.assertLogs(level="WARNING"):
            self.assertEqual(self.introspector.introspect_type("Nope"), [])


class TestDepthBounds(unittest.TestCase):
    """Test that cyclic models produce bounded trees."""

    def test_relation_cycle_is_bounded(self):
        """Test the self-referencing Person relation stops at the max depth."""
        for max_depth in (1, 2, 3, 4):
            introspector = SchemaIntrospector(make_registry(make_settings(max_relation_depth=max_depth)))
            tree = introspector.introspect_type("BlogPage")
            for descriptor in tree:
                if descriptor.is_relation:
                    self.assertLessEqual(descriptor.max_depth() + 1, max_depth)

    def test_truncated_relation_has_empty_children(self):
        """Test silent truncation at the depth bound."""
        introspector = SchemaIntrospector(make_registry())
        author = find(introspector.introspect_type("BlogPage"), "Author")

        mentor = find(author.children, "Mentor")
        innermost = find(mentor.children, "Mentor")

        self.assertEqual(innermost.children, [])

    def test_block_nesting_is_bounded(self):
        """Test that a block type allowing itself stops at the block depth."""
        registry = make_registry(make_settings(max_block_depth=2))
        registry.register_type(ContentType(
            name="NestedBlock",
            parent="BaseElement",
            relations=[RelationDefinition(name="Inner", kind="has_one", target="ElementalArea")],
            allowed_blocks={"Inner": ["NestedBlock"]}
        ))
        introspector = SchemaIntrospector(registry)

        levels = 0
        area = find(introspector.introspect_type("NestedBlock"), "Inner")
        while area is not None and area.allowed_types:
            levels += 1
            area = find(area.allowed_types[0].children, "Inner")

        self.assertEqual(levels, 2)
        self.assertEqual(area.allowed_types, [])


class TestBlockAreas(unittest.TestCase):
    """Test block-area discovery."""

    def setUp(self):
        """Set up test fixtures."""
        self.registry = make_registry()
        self.introspector = SchemaIntrospector(self.registry)

    def test_configured_block_types(self):
        """Test that configured constraints pick the allowed types."""
        area = find(self.introspector.introspect_type("LandingPage"), "Blocks")

        self.assertEqual([t.type_name for t in area.allowed_types], ["App.Blocks.TextBlock"])
        self.assertEqual([c.name for c in area.allowed_types[0].children], ["Title", "Heading", "Body"])
        self.assertEqual(area.allowed_types[0].title, "Text block")

    def test_fallback_to_all_block_types(self):
        """Test areas without constraints accept every block type."""
        self.registry.register_type(ContentType(
            name="Plain",
            relations=[RelationDefinition(name="Area", kind="has_one", target="ElementalArea")]
        ))

        area = find(self.introspector.introspect_type("Plain"), "Area")

        self.assertEqual([t.type_name for t in area.allowed_types], self.registry.block_types())

    def test_nested_block_area(self):
        """Test block types with their own block area."""
        area = find(self.introspector.introspect_type("BlogPage"), "ElementalArea")
        columns = [t for t in area.allowed_types if t.type_name == "App.Blocks.ColumnsBlock"][0]

        inner = find(columns.children, "Columns")

        self.assertEqual(inner.kind, FieldKind.BLOCK_AREA)
        self.assertEqual([t.type_name for t in inner.allowed_types], ["App.Blocks.TextBlock", "App.Blocks.ImageBlock"])

    def test_block_types_are_memoized(self):
        """Test that a block type is described once per block depth."""
        first = self.introspector.describe_block_type("App.Blocks.TextBlock", 1)
        second = self.introspector.describe_block_type("App.Blocks.TextBlock", 1)

        self.assertIs(first, second)

    def test_areas_always_included(self):
        """Test that block areas need no inclusion rule."""
        introspector = SchemaIntrospector(make_registry(make_settings(included_relationship_types=[])))

        self.assertIsNotNone(find(introspector.introspect_type("BlogPage"), "ElementalArea"))


class TestCachedStructure(ContentTestCase):
    """Test structure lookups through the cache."""

    def setUp(self):
        """Set up test fixtures."""
        super().setUp()
        self.cache = StructureCache(default_ttl=60)
        self.introspector = SchemaIntrospector(self.registry, self.settings, self.cache)

    def test_structure_is_cached(self):
        """Test that an unchanged object is introspected once."""
        page = self.store.create("BlogPage").persist()

        with patch.object(self.introspector, "introspect", wraps=self.introspector.introspect) as introspect:
            first = self.introspector.get_structure(page)
            second = self.introspector.get_structure(page)

        self.assertEqual(introspect.call_count, 1)
        self.assertEqual(first, second)
        self.assertTrue(self.cache.has(self.cache.generate_cache_key(page)))

    def test_refresh_cache(self):
        """Test forcing a fresh introspection."""
        page = self.store.create("BlogPage").persist()

        with patch.object(self.introspector, "introspect", wraps=self.introspector.introspect) as introspect:
            self.introspector.get_structure(page)
            self.introspector.get_structure(page, refresh_cache=True)

        self.assertEqual(introspect.call_count, 2)

    def test_saved_versions_do_not_accumulate(self):
        """Test that each new save of an object replaces its cached structure."""
        page = self.store.create("BlogPage").persist()

        for offset in range(100):
            marker = datetime(2024, 1, 1) + timedelta(seconds=offset)
            with patch.object(page, "last_modified_marker", return_value=marker):
                self.introspector.get_structure(page)

        self.assertEqual(len(self.cache), 1)

    def test_without_cache(self):
        """Test introspection without a cache."""
        introspector = SchemaIntrospector(self.registry)
        page = self.store.create("Page")

        self.assertEqual(introspector.get_structure(page), introspector.introspect(page))


if __name__ == '__main__':
    unittest.main()
