"""Unit tests for module resolution across files."""

from pathlib import Path

import pytest

from snipbundle.errors import ModuleFileNotFoundError, ParseFileError, ResolveError, SourceFileNotFoundError
from snipbundle.resolve import CfgPolicy, CfgSet, ModuleContext, ModuleResolver, resolve_file


def names(items):
    return [item.name for item in items]


class TestModuleContext:
    def test_for_root(self):
        ctx = ModuleContext.for_root(Path("/crate/src/lib.rs"))
        assert ctx == ModuleContext(mod_dir=Path("/crate/src"), cwd=Path("/crate/src"))

    def test_enter_inline(self):
        ctx = ModuleContext(mod_dir=Path("/a"), cwd=Path("/b"))
        assert ctx.enter_inline("m", None) == ModuleContext(mod_dir=Path("/a/m"), cwd=Path("/a/m"))

    def test_enter_inline_with_path_override(self):
        ctx = ModuleContext(mod_dir=Path("/a"), cwd=Path("/b"))
        assert ctx.enter_inline("m", "other") == ModuleContext(mod_dir=Path("/b/other"), cwd=Path("/b/other"))


class TestResolveFiles:
    def test_sibling_file(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod util;\n",
                "src/util.rs": "pub fn helper() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        util = tree.items[0]
        assert util.name == "util"
        assert util.body is not None
        assert names(util.body.items) == ["helper"]

    def test_mod_rs_file(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "pub mod graph;\n",
                "src/graph/mod.rs": "pub mod dfs;\n",
                "src/graph/dfs.rs": "pub fn dfs() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        graph = tree.items[0]
        dfs = graph.body.items[0]
        assert names(dfs.body.items) == ["dfs"]

    def test_nested_module_from_sibling_file(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod a;\n",
                "src/a.rs": "mod b;\n",
                "src/a/b.rs": "fn deep() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        assert names(tree.items[0].body.items[0].body.items) == ["deep"]

    def test_sibling_file_wins_over_mod_rs(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod m;\n",
                "src/m.rs": "fn from_sibling() {}\n",
                "src/m/mod.rs": "fn from_mod_rs() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        assert names(tree.items[0].body.items) == ["from_sibling"]

    def test_path_override(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": '#[path = "impls/fast.rs"]\nmod fast;\n',
                "src/impls/fast.rs": "fn fast() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        assert names(tree.items[0].body.items) == ["fast"]

    def test_inline_module_searches_its_own_directory(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod outer {\n    mod inner;\n}\n",
                "src/outer/inner.rs": "fn found() {}\n",
            }
        )
        tree = resolve_file(root / "src/lib.rs")
        inner = tree.items[0].body.items[0]
        assert names(inner.body.items) == ["found"]

    def test_file_inner_attributes_move_into_module(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod m;\n",
                "src/m.rs": "#![allow(dead_code)]\nfn f() {}\n",
            }
        )
        module = resolve_file(root / "src/lib.rs").items[0]
        assert [attr.text for attr in module.body.inner_attrs] == ["allow(dead_code)"]
        assert module.render() == "mod m {\n#![allow(dead_code)]\nfn f() {}\n}\n"


class TestResolveErrors:
    def test_missing_root(self, tmp_path):
        with pytest.raises(SourceFileNotFoundError):
            resolve_file(tmp_path / "lib.rs")

    def test_missing_module_file(self, write_crate):
        root = write_crate({"src/lib.rs": "mod gone;\n"})
        with pytest.raises(ModuleFileNotFoundError) as exc_info:
            resolve_file(root / "src/lib.rs")
        assert exc_info.value.name == "gone"
        assert exc_info.value.attempted_path == root / "src/gone.rs"

    def test_missing_path_override(self, write_crate):
        root = write_crate({"src/lib.rs": '#[path = "x.rs"]\nmod gone;\n'})
        with pytest.raises(ModuleFileNotFoundError) as exc_info:
            resolve_file(root / "src/lib.rs")
        assert exc_info.value.attempted_path == root / "src/x.rs"

    def test_parse_error_in_module_aborts(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod ok;\nmod bad;\n",
                "src/ok.rs": "fn ok() {}\n",
                "src/bad.rs": "fn (\n",
            }
        )
        with pytest.raises(ParseFileError) as exc_info:
            resolve_file(root / "src/lib.rs")
        assert exc_info.value.path == root / "src/bad.rs"
        assert isinstance(exc_info.value, ResolveError)


class TestResolveCfg:
    def test_disabled_module_needs_no_file(self, write_crate):
        root = write_crate({"src/lib.rs": "#[cfg(nightly)]\nmod unstable;\nfn keep() {}\n"})
        cfg = CfgSet.from_strings(disable=["nightly"])
        tree = resolve_file(root / "src/lib.rs", cfg)
        assert names(tree.items) == ["keep"]

    def test_enable_set_with_ternary_policy(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": """
                    #[cfg(X)]
                    fn on() {}
                    #[cfg(not(X))]
                    fn off() {}
                    #[cfg(Y)]
                    fn unknown() {}
                """,
            }
        )
        cfg = CfgSet.from_strings(enable=["X"], policy=CfgPolicy.TERNARY)
        tree = resolve_file(root / "src/lib.rs", cfg)
        assert names(tree.items) == ["on", "unknown"]
        assert tree.items[0].attrs == []
        assert [attr.text for attr in tree.items[1].attrs] == ["cfg(Y)"]

    def test_enable_set_with_default_true_policy(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": """
                    #[cfg(X)]
                    fn on() {}
                    #[cfg(not(X))]
                    fn off() {}
                    #[cfg(Y)]
                    fn unknown() {}
                    #[cfg(not(Y))]
                    fn not_unknown() {}
                """,
            }
        )
        cfg = CfgSet.from_strings(enable=["X"], policy=CfgPolicy.DEFAULT_TRUE)
        tree = resolve_file(root / "src/lib.rs", cfg)
        assert names(tree.items) == ["on", "unknown"]
        assert all(item.attrs == [] for item in tree.items)

    def test_cfg_applies_inside_module_files(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": "mod m;\n",
                "src/m.rs": "#[cfg(test)]\nmod tests;\nfn f() {}\n",
            }
        )
        cfg = CfgSet.from_strings(disable=["test"])
        tree = ModuleResolver(cfg).resolve(root / "src/lib.rs")
        assert names(tree.items[0].body.items) == ["f"]

    def test_cfg_applies_inside_function_bodies(self, write_crate):
        root = write_crate(
            {
                "src/lib.rs": """
                    fn outer() {
                        #[cfg(not(X))]
                        fn gone() {}
                        #[cfg(X)]
                        fn kept() {}
                        #[cfg(Y)]
                        fn undecided() {}
                    }
                """,
            }
        )
        cfg = CfgSet.from_strings(enable=["X"], policy=CfgPolicy.TERNARY)
        outer = resolve_file(root / "src/lib.rs", cfg).items[0]
        assert names(outer.children) == ["kept", "undecided"]
        assert outer.children[0].attrs == []
        assert [attr.text for attr in outer.children[1].attrs] == ["cfg(Y)"]
        assert "gone" not in outer.render()
