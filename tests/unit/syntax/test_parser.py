"""Unit tests for the Tree-sitter based Rust parser."""

import pytest

from snipbundle.errors import ParseFileError, RustSyntaxError, SourceFileNotFoundError, SourceIOError
from snipbundle.syntax import MODULE_KIND, Attribute, Item, ModuleBody, NestedItem


class TestParseText:
    """Tests for RustParser.parse_text()."""

    def test_items_and_names(self, parser):
        source = parser.parse_text("fn a() {}\nstruct B;\nimpl B {}\n")
        assert [item.kind for item in source.items] == ["function_item", "struct_item", "impl_item"]
        assert [item.name for item in source.items] == ["a", "B", None]

    def test_outer_attributes_attach_to_next_item(self, parser):
        source = parser.parse_text("#[derive(Debug)]\n#[codesnip::entry]\nstruct S;\nfn f() {}\n")
        struct, func = source.items
        assert [attr.text for attr in struct.attrs] == ["derive(Debug)", "codesnip::entry"]
        assert func.attrs == []

    def test_attribute_path(self, parser):
        source = parser.parse_text('#[codesnip :: entry("x")]\nfn f() {}\n')
        assert source.items[0].attrs[0].path == "codesnip::entry"

    def test_doc_comments_are_doc_attributes(self, parser):
        source = parser.parse_text("/// Adds.\n/// Twice.\nfn add() {}\n")
        attrs = source.items[0].attrs
        assert [attr.path for attr in attrs] == ["doc", "doc"]
        assert attrs[0].render() == "/// Adds."

    def test_ordinary_comments_are_dropped(self, parser):
        source = parser.parse_text("// note\nfn f() {}\n/* block */\n")
        assert len(source.items) == 1
        assert source.items[0].attrs == []

    def test_inner_attributes(self, parser):
        source = parser.parse_text("#![allow(dead_code)]\n//! Crate docs.\nfn f() {}\n")
        assert [attr.render() for attr in source.inner_attrs] == ["#![allow(dead_code)]", "//! Crate docs."]

    def test_module_declaration(self, parser):
        item = parser.parse_text("pub mod util;\n").items[0]
        assert item.kind == MODULE_KIND
        assert item.is_module_declaration
        assert item.text == "pub mod util"
        assert item.render() == "pub mod util;\n"

    def test_inline_module(self, parser):
        item = parser.parse_text("mod m {\n    #![allow(unused)]\n    fn f() {}\n}\n").items[0]
        assert item.is_module
        assert not item.is_module_declaration
        assert item.text == "mod m"
        assert [a.text for a in item.body.inner_attrs] == ["allow(unused)"]
        assert [child.name for child in item.body.items] == ["f"]

    def test_items_inside_function_body(self, parser):
        source = "fn outer() {\n    let x = 1;\n    #[inline]\n    fn helper() {}\n    struct Local;\n}\n"
        item = parser.parse_text(source).items[0]
        assert [child.name for child in item.children] == ["helper", "Local"]
        assert [attr.text for attr in item.children[0].attrs] == ["inline"]
        assert item.render() == "fn outer() {\n    let x = 1;\n    #[inline]\nfn helper() {}\n    struct Local;\n}\n"

    def test_items_inside_method_bodies(self, parser):
        item = parser.parse_text("impl S {\n    fn m(&self) {\n        fn inner() {}\n    }\n}\n").items[0]
        assert [child.name for child in item.children] == ["inner"]

    def test_statement_attributes_stay_verbatim(self, parser):
        item = parser.parse_text("fn f() {\n    #[allow(unused)]\n    let x = 1;\n}\n").items[0]
        assert item.nested == []
        assert item.render() == "fn f() {\n    #[allow(unused)]\n    let x = 1;\n}\n"

    def test_syntax_error(self, parser):
        with pytest.raises(RustSyntaxError) as exc_info:
            parser.parse_text("fn f( {\n")
        assert exc_info.value.line >= 1


class TestParseFile:
    """Tests for RustParser.parse_file()."""

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(SourceFileNotFoundError) as exc_info:
            parser.parse_file(tmp_path / "nope.rs")
        assert exc_info.value.path == tmp_path / "nope.rs"

    def test_invalid_utf8(self, parser, tmp_path):
        path = tmp_path / "bad.rs"
        path.write_bytes(b"fn f() {}\n\xff\xfe")
        with pytest.raises(SourceIOError):
            parser.parse_file(path)

    def test_parse_error_carries_path(self, parser, tmp_path):
        path = tmp_path / "broken.rs"
        path.write_text("struct {\n")
        with pytest.raises(ParseFileError) as exc_info:
            parser.parse_file(path)
        assert exc_info.value.path == path
        assert isinstance(exc_info.value.syntax_error, RustSyntaxError)


class TestRender:
    """Tests for Item.render()."""

    def test_attributes_then_text(self):
        item = Item(kind="function_item", text="fn f() {}", attrs=[Attribute("inline"), Attribute("/// Doc.", doc=True)])
        assert item.render() == "#[inline]\n/// Doc.\nfn f() {}\n"

    def test_module_with_body(self):
        child = Item(kind="function_item", text="fn f() {}")
        item = Item(
            kind=MODULE_KIND,
            text="pub mod m",
            body=ModuleBody(inner_attrs=[Attribute("allow(unused)", inner=True)], items=[child]),
        )
        assert item.render() == "pub mod m {\n#![allow(unused)]\nfn f() {}\n}\n"

    def test_removed_nested_item(self):
        item = Item(kind="function_item", text="fn f() { fn g() {} }", nested=[NestedItem(9, 18, None)])
        assert item.children == []
        assert item.render() == "fn f() {  }\n"

    def test_nested_item_rendered_with_its_attributes(self):
        inner = Item(kind="function_item", text="fn g() {}", attrs=[Attribute("inline")])
        item = Item(kind="function_item", text="fn f() { fn g() {} }", nested=[NestedItem(9, 18, inner)])
        assert item.render() == "fn f() { #[inline]\nfn g() {} }\n"
