"""Unit tests for collecting annotated items into a snippet map."""

import logging

from snipbundle.resolve import CfgSet, resolve_file
from snipbundle.snippets import Filter, collect_entries


def collect(parser, source: str, filter=None):
    return collect_entries(parser.parse_text(source).items, filter)


class TestCollectEntries:
    def test_name_from_item(self, parser):
        snippets = collect(parser, "#[codesnip::entry]\npub fn gcd() {}\nfn other() {}\n")
        assert snippets.keys() == ["gcd"]
        assert snippets["gcd"].contents == "pub fn gcd() {}\n"

    def test_includes(self, parser):
        snippets = collect(parser, '#[codesnip::entry("lcm", include("gcd"))]\nfn lcm() {}\n')
        assert snippets["lcm"].includes == {"gcd"}

    def test_multiple_annotations_on_one_item(self, parser):
        snippets = collect(parser, '#[codesnip::entry("a")]\n#[codesnip::entry("b", include("a"))]\nstruct S;\n')
        assert snippets.keys() == ["a", "b"]
        assert snippets["a"].contents == snippets["b"].contents == "struct S;\n"

    def test_same_name_appends_in_source_order(self, parser):
        source = """\
            #[codesnip::entry("pair")]
            struct Pair;
            #[codesnip::entry("pair", include("ord"))]
            impl Pair {}
        """
        snippets = collect(parser, source.replace("            ", ""))
        assert snippets["pair"].contents == "struct Pair;\nimpl Pair {}\n"
        assert snippets["pair"].includes == {"ord"}

    def test_other_attributes_are_kept(self, parser):
        snippets = collect(parser, "#[derive(Debug)]\n#[codesnip::entry]\nstruct S;\n")
        assert snippets["S"].contents == "#[derive(Debug)]\nstruct S;\n"

    def test_module_entry_renders_whole_module(self, parser):
        snippets = collect(parser, '#[codesnip::entry("m")]\nmod m {\n    fn f() {}\n}\n')
        assert snippets["m"].contents == "mod m {\nfn f() {}\n}\n"

    def test_inline_module_entry_renders_children(self, parser):
        source = '#[codesnip::entry("m", inline)]\nmod m {\n    fn f() {}\n    fn g() {}\n}\n'
        snippets = collect(parser, source)
        assert snippets["m"].contents == "fn f() {}\nfn g() {}\n"

    def test_inline_on_non_module_renders_item(self, parser):
        snippets = collect(parser, '#[codesnip::entry("f", inline)]\nfn f() {}\n')
        assert snippets["f"].contents == "fn f() {}\n"

    def test_nested_entries_are_collected(self, parser):
        source = '#[codesnip::entry("outer")]\nmod outer {\n    #[codesnip::entry("inner")]\n    fn inner() {}\n}\n'
        snippets = collect(parser, source)
        assert snippets.keys() == ["inner", "outer"]
        assert snippets["inner"].contents == "fn inner() {}\n"
        assert snippets["outer"].contents == "mod outer {\nfn inner() {}\n}\n"

    def test_entries_inside_unannotated_module(self, parser):
        snippets = collect(parser, "mod m {\n    #[codesnip::entry]\n    fn f() {}\n}\n")
        assert snippets.keys() == ["f"]

    def test_invalid_annotation_is_skipped(self, parser, caplog):
        with caplog.at_level(logging.WARNING, logger="snipbundle.snippets.collect"):
            snippets = collect(parser, "#[codesnip::entry(42)]\nfn f() {}\n#[codesnip::entry]\nimpl S {}\n")
        assert len(snippets) == 0
        assert len(caplog.records) == 2

    def test_no_entries(self, parser):
        assert len(collect(parser, "fn f() {}\n")) == 0


class TestFilter:
    def test_skip_item(self, parser):
        source = '#[codesnip::entry("m")]\nmod m {\n    #[codesnip::skip]\n    fn hidden() {}\n    fn shown() {}\n}\n'
        snippets = collect(parser, source)
        assert snippets["m"].contents == "mod m {\nfn shown() {}\n}\n"

    def test_skipped_entry_is_empty(self, parser):
        snippets = collect(parser, "#[codesnip::entry]\n#[codesnip::skip]\nfn f() {}\n")
        assert snippets["f"].contents == ""

    def test_filter_item(self, parser):
        source = '#[codesnip::entry("m", inline)]\nmod m {\n    fn f() {}\n    #[test]\n    fn t() {}\n}\n'
        snippets = collect(parser, source, Filter.create(filter_item=["test"]))
        assert snippets["m"].contents == "fn f() {}\n"

    def test_filter_attr(self, parser):
        source = "/// Docs.\n#[allow(dead_code)]\n#[inline]\n#[codesnip::entry]\nfn f() {}\n"
        snippets = collect(parser, source, Filter.create(filter_attr=["doc", "allow"]))
        assert snippets["f"].contents == "#[inline]\nfn f() {}\n"

    def test_filter_paths_are_normalized(self):
        filter = Filter.create(filter_attr=["rustfmt :: skip"])
        assert filter.filter_attr == ("rustfmt::skip",)

    def test_render_item_returns_empty_for_skipped(self, parser):
        item = parser.parse_text("#[cfg(test)]\nfn f() {}\n").items[0]
        assert Filter.create(filter_item=["cfg"]).render_item(item) == ""

    def test_skip_inside_function_body(self, parser):
        source = "#[codesnip::entry]\nfn outer() {\n    #[codesnip::skip]\n    fn hidden() {}\n    fn shown() {}\n}\n"
        snippets = collect(parser, source)
        assert snippets["outer"].contents == "fn outer() {\n    \n    fn shown() {}\n}\n"


class TestNestedInFunctionBodies:
    def test_entries_inside_function_body(self, parser):
        source = "#[codesnip::entry]\nfn outer() {\n    #[codesnip::entry]\n    fn inner() {}\n}\n"
        snippets = collect(parser, source)
        assert snippets.keys() == ["inner", "outer"]
        assert snippets["inner"].contents == "fn inner() {}\n"
        assert snippets["outer"].contents == "fn outer() {\n    fn inner() {}\n}\n"

    def test_entries_inside_unannotated_function(self, parser):
        snippets = collect(parser, "fn main() {\n    #[codesnip::entry]\n    struct Local;\n}\n")
        assert snippets.keys() == ["Local"]


class TestCollectResolvedCrate:
    """Collection over trees produced by the module resolver."""

    def test_cfg_and_entries_in_function_body(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": (
                    "#[codesnip::entry]\n"
                    "fn outer() { #[cfg(not(X))] fn gone() {} #[codesnip::entry] fn inner() {} }\n"
                ),
            }
        )
        tree = resolve_file(root / "src/lib.rs", CfgSet.from_strings(enable=["X"]))
        snippets = collect_entries(tree.items)
        assert snippets.keys() == ["inner", "outer"]
        assert snippets["outer"].contents == "fn outer() {  fn inner() {} }\n"

    def test_skip_in_module_file(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": '#[codesnip::entry("m")]\nmod m;\n',
                "src/m.rs": "#[codesnip::skip]\nfn hidden() {}\nfn shown() {}\n",
            }
        )
        snippets = collect_entries(resolve_file(root / "src/lib.rs").items)
        assert snippets["m"].contents == "mod m {\nfn shown() {}\n}\n"

    def test_inline_entry_with_skip_in_module_file(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": '#[codesnip::entry("m", inline)]\nmod m;\n',
                "src/m.rs": "#[codesnip::skip]\nfn hidden() {}\nfn shown() {}\n",
            }
        )
        snippets = collect_entries(resolve_file(root / "src/lib.rs").items)
        assert snippets["m"].contents == "fn shown() {}\n"
