"""In-memory namespace, contexts, and enumeration."""

from stardust.namespace.context import Context
from stardust.namespace.enumeration import Enumerator
from stardust.namespace.inmem import (
    MemFile,
    MemFolder,
    MemLink,
    MemString,
    ReadOnlyFolder,
    function_folder,
)
from stardust.namespace.toolbox import mkdirp
from stardust.utils.helpers import format_number, join_path, rfc3339_nano, split_path


def _tree() -> Context:
    root = MemFolder.of(
        "root",
        MemFolder.of("docs", MemString("readme", "hello", "string"), MemFile("blob", b"abc")),
        MemLink("shortcut", "/docs"),
        function_folder("echo", lambda ctx, input: input),
    )
    return Context("mem:/", root)


def test_typed_getters_narrow_by_type() -> None:
    ctx = _tree()

    assert ctx.get_string("/docs/readme").get() == "hello"
    assert ctx.get_folder("/docs/readme") is None
    assert ctx.get_file("docs/blob").read() == b"abc"
    assert ctx.get_file("docs/blob").read(1, 1) == b"b"
    assert ctx.get_function("/echo/invoke") is not None
    assert ctx.get("/missing/deeper") is None
    assert ctx.get("") is ctx.root
    assert ctx.get(".") is ctx.root


def test_links_resolve_relative_to_root() -> None:
    ctx = _tree()

    assert ctx.get_string("/shortcut/readme").get() == "hello"
    assert ctx.get_folder("/shortcut") is ctx.get_folder("/docs")


def test_link_loops_resolve_to_nothing() -> None:
    root = MemFolder.of("root", MemLink("a", "/b"), MemLink("b", "/a"))
    assert Context("loop:/", root).get("/a") is None


def test_put_upserts_and_deletes() -> None:
    ctx = _tree()

    assert ctx.put("/docs/new", MemString("new", "x"))
    assert ctx.get_string("/docs/new").get() == "x"
    assert ctx.put("/docs/new", None)
    assert ctx.get("/docs/new") is None
    assert not ctx.put("/nowhere/new", MemString("new", "x"))
    assert not ctx.put("", MemString("root", "x"))


def test_read_only_folder_rejects_writes_at_every_depth() -> None:
    inner = MemFolder.of("inner", MemString("k", "v"))
    view = ReadOnlyFolder(MemFolder.of("outer", inner))
    ctx = Context("ro:/", view)

    assert ctx.get_string("/inner/k").get() == "v"
    assert not ctx.put("/x", MemString("x", "1"))
    assert not ctx.put("/inner/k", None)
    assert inner.fetch("k") is not None


def test_mkdirp_creates_missing_and_keeps_existing() -> None:
    ctx = _tree()

    assert mkdirp(ctx, "/docs/a/b")
    assert ctx.get_folder("/docs/a/b") is not None
    assert ctx.get_string("/docs/readme").get() == "hello"
    assert not mkdirp(ctx, "/docs/readme/sub")


def test_enumerator_lists_start_then_children() -> None:
    ctx = _tree()
    results = list(Enumerator(ctx, ctx.get("/docs"), 1).run())

    assert [(r.name, r.type, r.string_value) for r in results] == [
        ("", "Folder", ""),
        ("blob", "File", ""),
        ("readme", "String", "hello"),
    ]


def test_enumerator_depth_zero_is_just_the_start() -> None:
    ctx = _tree()
    assert len(list(Enumerator(ctx, ctx.root, 0).run())) == 1


def test_format_number_matches_script_canonical_text() -> None:
    assert format_number(42) == "42"
    assert format_number(42.0) == "42"
    assert format_number(2.5) == "2.5"
    assert format_number(-0.125) == "-0.125"
    assert format_number(1e20) == "100000000000000000000"
    assert format_number(1e21) == "1e+21"
    assert format_number(0.0001) == "0.0001"
    assert format_number(0.00001) == "1e-05"
    assert format_number(float("inf")) == "+Inf"


def test_path_helpers() -> None:
    assert split_path("/a//b/./c/") == ["a", "b", "c"]
    assert join_path() == ""
    assert join_path("a", "b") == "/a/b"
    assert rfc3339_nano(1_700_000_000_500_000_000) == "2023-11-14T22:13:20.5Z"
    assert rfc3339_nano(1_700_000_000_000_000_000) == "2023-11-14T22:13:20Z"
