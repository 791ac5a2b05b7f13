"""Tests for mutation-driven incremental scanning."""

import pytest

from conftest import by_id
from lingoscan.documents import parse_html
from lingoscan.scanner import DeepScanner
from lingoscan.structures import DEFAULT_ATTRIBUTES, ScanBudget, ScanOptions
from lingoscan.watcher import MutationWatcher


class Harness:
    """A watcher wired to a scanner that records every unit."""

    def __init__(self, markup, options=None):
        self.document = parse_html(markup)
        self.options = options or ScanOptions()
        self.units = []
        self.deliveries = 0
        self.budget = ScanBudget(self.options.max_nodes)
        self.scanner = DeepScanner(self.options, self.budget, self.units.append)
        self.watcher = MutationWatcher(self.document, DEFAULT_ATTRIBUTES, self.on_records)

    def on_records(self, records):
        self.deliveries += 1
        self.budget.begin_pass()
        self.watcher.dispatch(records, self.scanner)

    @property
    def texts(self):
        return [(unit.origin, unit.text) for unit in self.units]


@pytest.fixture
def harness():
    h = Harness("<div id='app'><p id='greeting'>Hello</p></div>")
    h.watcher.start()
    return h


class TestDispatch:
    def test_added_element_scanned(self, harness):
        document = harness.document
        item = document.create_element("li", {"title": "Item tip"})
        item.append_child(document.create_text_node("New item"))
        by_id(document, "app").append_child(item)
        document.flush_mutations()
        assert harness.texts == [("attr:title", "Item tip"), ("text", "New item")]

    def test_added_text_scanned(self, harness):
        document = harness.document
        by_id(document, "greeting").append_child(document.create_text_node(" again"))
        document.flush_mutations()
        assert harness.texts == [("text", " again")]

    def test_character_data_change(self, harness):
        text = by_id(harness.document, "greeting").children[0]
        text.data = "Welcome back"
        harness.document.flush_mutations()
        assert harness.texts == [("text", "Welcome back")]

    def test_allow_listed_attribute_change(self, harness):
        greeting = by_id(harness.document, "greeting")
        greeting.set_attribute("aria-label", "Greeting")
        greeting.set_attribute("data-id", "42")
        harness.document.flush_mutations()
        assert harness.texts == [("attr:aria-label", "Greeting")]

    def test_detached_nodes_ignored(self, harness):
        document = harness.document
        item = document.create_element("p")
        item.append_child(document.create_text_node("Gone soon"))
        by_id(document, "app").append_child(item)
        item.remove()
        document.flush_mutations()
        assert harness.texts == []

    def test_records_processed_in_order(self, harness):
        document = harness.document
        app = by_id(document, "app")
        for label in ("First", "Second", "Third"):
            item = document.create_element("p")
            item.append_child(document.create_text_node(label))
            app.append_child(item)
        document.flush_mutations()
        assert [text for _, text in harness.texts] == ["First", "Second", "Third"]
        assert harness.deliveries == 1

    def test_exhausted_budget_drops_rest_of_batch(self):
        harness = Harness("<div id='app'></div>", ScanOptions(max_nodes=2))
        harness.watcher.start()
        document = harness.document
        app = by_id(document, "app")
        for label in ("First", "Second", "Third"):
            item = document.create_element("p")
            item.append_child(document.create_text_node(label))
            app.append_child(item)
        document.flush_mutations()
        assert [text for _, text in harness.texts] == ["First"]
        assert harness.budget.exhausted


class TestLifecycle:
    def test_stop_disconnects(self, harness):
        harness.watcher.stop()
        assert not harness.watcher.active
        by_id(harness.document, "greeting").children[0].data = "Changed"
        harness.document.flush_mutations()
        assert harness.deliveries == 0

    def test_start_is_idempotent(self, harness):
        harness.watcher.start()
        by_id(harness.document, "greeting").children[0].data = "Changed"
        harness.document.flush_mutations()
        assert harness.deliveries == 1
        assert len(harness.units) == 1

    def test_nested_root_observed_on_request(self, harness):
        document = harness.document
        host = by_id(document, "app")
        shadow = host.attach_shadow()
        label = document.create_element("span")
        label.append_child(document.create_text_node("Before"))
        shadow.append_child(label)
        document.flush_mutations()
        assert harness.texts == []

        harness.watcher.observe_root(shadow)
        label.children[0].data = "Inside shadow"
        document.flush_mutations()
        assert harness.texts == [("text", "Inside shadow")]

    def test_observe_root_ignored_when_inactive(self):
        harness = Harness("<div id='app'></div>")
        harness.watcher.observe_root(harness.document)
        harness.document.body.append_child(harness.document.create_element("p"))
        assert harness.document.flush_mutations() == 0
