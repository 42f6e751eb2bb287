"""Tests for cross-directory target aggregation and go_mod emission."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

import pytest

from modgen.config import GoModConfig
from modgen.gomod.aggregator import Aggregator
from modgen.models import BuildFile, ManifestDirectory, Rule

Visit = Tuple[str, Optional[BuildFile], Sequence[Rule], List[str]]


def _file(directory: Path, *rules: Rule) -> BuildFile:
    return BuildFile(path=directory / "BUILD.bazel", statements=list(rules))


def _lib(name: str) -> Rule:
    return Rule("go_library", name, {"srcs": [f"{name}.go"]})


def _demo_root(tmp_path: Path, module_line: str = "module example.com/demo\n") -> ManifestDirectory:
    (tmp_path / "go.mod").write_text(module_line + "\ngo 1.25\n", encoding="utf-8")
    return ManifestDirectory(path=tmp_path, rel="")


def _fold(aggregator: Aggregator, governing: ManifestDirectory, visits: Iterable[Visit]) -> List[Rule]:
    emitted: List[Rule] = []
    for rel, build_file, other_gen, files in visits:
        emitted.extend(aggregator.visit(build_file, other_gen, rel, governing, files))
    return emitted


def test_root_manifest_collects_descendant_libraries(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    visits: List[Visit] = [
        ("pkg/a", _file(tmp_path / "pkg" / "a", _lib("lib1")), [], ["a.go"]),
        ("pkg/b", _file(tmp_path / "pkg" / "b", _lib("lib2"), Rule("go_binary", "tool")), [], []),
        ("", None, [], ["go.mod"]),
    ]

    emitted = _fold(Aggregator(), root, visits)

    assert len(emitted) == 1
    rule = emitted[0]
    assert rule.kind == "go_mod"
    assert rule.name == "go_mod_dir"
    assert rule.attr("module_path") == "example.com/demo"
    assert rule.attr("go_mod") == ":go.mod"
    assert not rule.has_attr("go_sum")
    assert not rule.has_attr("visibility")
    assert rule.attr("deps") == ["//pkg/a:lib1", "//pkg/b:lib2"]


def test_duplicate_visits_do_not_duplicate_deps(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    pkg_a = _file(tmp_path / "pkg" / "a", _lib("lib1"))
    visits: List[Visit] = [
        ("pkg/a", pkg_a, [], []),
        ("pkg/a", pkg_a, [], []),
        ("", None, [], ["go.mod"]),
    ]

    [rule] = _fold(Aggregator(), root, visits)

    assert rule.attr("deps") == ["//pkg/a:lib1"]


def test_deps_are_independent_of_visit_order(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    subtree: List[Visit] = [
        ("pkg/b", _file(tmp_path / "pkg" / "b", _lib("lib2")), [], []),
        ("pkg/a", _file(tmp_path / "pkg" / "a", _lib("lib1")), [], []),
        ("pkg/c", None, [_lib("gen")], []),
    ]
    manifest: Visit = ("", _file(tmp_path, _lib("root_lib")), [], ["go.mod"])

    [forward] = _fold(Aggregator(), root, subtree + [manifest])
    [backward] = _fold(Aggregator(), root, list(reversed(subtree)) + [manifest])

    assert forward.attr("deps") == backward.attr("deps")
    assert forward.attr("deps") == ["//pkg/a:lib1", "//pkg/b:lib2", "//pkg/c:gen", ":root_lib"]


def test_lock_file_is_referenced_only_when_present(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)

    [with_lock] = Aggregator().visit(None, [], "", root, ["go.mod", "go.sum"])
    [without_lock] = Aggregator().visit(None, [], "", root, ["go.mod"])

    assert with_lock.attr("go_sum") == ":go.sum"
    assert not without_lock.has_attr("go_sum")


def test_prior_declaration_attributes_are_salvaged(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    previous = Rule(
        "go_mod",
        "workspace_mod",
        {
            "module_path": "override.example/pinned",
            "go_mod": ":go.mod",
            "deps": ["//stale:gone"],
            "visibility": ["//visibility:public"],
            "tags": ["manual"],
        },
    )
    existing = _file(tmp_path, previous, _lib("root_lib"))

    [rule] = Aggregator().visit(existing, [], "", root, ["go.mod"])

    assert previous.deleted
    assert rule is not previous
    assert rule.name == "workspace_mod"
    assert rule.attr("module_path") == "override.example/pinned"
    assert rule.attr("visibility") == ["//visibility:public"]
    assert rule.attr("deps") == [":root_lib"]
    assert not rule.has_attr("tags")


def test_parsed_module_path_used_when_prior_declaration_has_none(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    previous = Rule("go_mod", "go_mod_dir", {"visibility": ["//foo:__subpackages__"]})

    [rule] = Aggregator().visit(_file(tmp_path, previous), [], "", root, ["go.mod"])

    assert rule.attr("module_path") == "example.com/demo"
    assert rule.attr("visibility") == ["//foo:__subpackages__"]


def test_quoted_module_directive(tmp_path: Path) -> None:
    root = _demo_root(tmp_path, 'module "example.com/demo"')

    [rule] = Aggregator().visit(None, [], "", root, ["go.mod"])

    assert rule.attr("module_path") == "example.com/demo"


def test_soft_deleted_libraries_do_not_contribute(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    lib1, lib2 = _lib("lib1"), _lib("lib2")
    lib2.delete()
    lib3, lib4 = _lib("lib3"), _lib("lib4")
    lib4.delete()

    [rule] = Aggregator().visit(_file(tmp_path, lib1, lib2), [lib3, lib4], "", root, ["go.mod"])

    assert rule.attr("deps") == [":lib1", ":lib3"]


def test_unparseable_manifest_skips_emission_but_keeps_targets(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    root = _demo_root(tmp_path, "// no directive here")
    aggregator = Aggregator()
    caplog.set_level(logging.WARNING, logger="modgen")

    emitted = _fold(
        aggregator,
        root,
        [
            ("pkg/a", _file(tmp_path / "pkg" / "a", _lib("lib1")), [], []),
            ("", None, [], ["go.mod"]),
        ],
    )

    assert emitted == []
    assert aggregator.targets_for(tmp_path) == ["//pkg/a:lib1"]
    assert "no module directive" in caplog.text


def test_missing_manifest_file_is_treated_as_parse_failure(tmp_path: Path) -> None:
    governing = ManifestDirectory(path=tmp_path, rel="")

    assert Aggregator().visit(None, [], "", governing, ["go.mod"]) == []


def test_ungoverned_directory_is_a_no_op(tmp_path: Path) -> None:
    aggregator = Aggregator()

    emitted = aggregator.visit(_file(tmp_path, _lib("orphan")), [], "pkg", None, ["a.go"])

    assert emitted == []
    assert aggregator.pending() == []


def test_non_manifest_directory_only_contributes(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    aggregator = Aggregator()

    emitted = aggregator.visit(_file(tmp_path / "pkg", _lib("lib")), [], "pkg", root, [])

    assert emitted == []
    assert aggregator.targets_for(tmp_path) == ["//pkg:lib"]
    assert aggregator.pending() == [tmp_path]


def test_emission_gate_accepts_equivalent_root_spellings(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)

    assert len(Aggregator().visit(None, [], ".", root, ["go.mod"])) == 1


def test_late_contribution_after_emission_does_not_crash(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    root = _demo_root(tmp_path)
    aggregator = Aggregator()
    caplog.set_level(logging.DEBUG, logger="modgen")

    [first] = aggregator.visit(_file(tmp_path, _lib("root_lib")), [], "", root, ["go.mod"])
    aggregator.visit(_file(tmp_path / "late", _lib("late")), [], "late", root, [])

    assert first.attr("deps") == [":root_lib"]
    assert aggregator.targets_for(tmp_path) == ["//late:late", ":root_lib"]
    assert aggregator.pending() == []
    assert "Late contribution" in caplog.text


def test_nested_manifests_accumulate_separately(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    svc_dir = tmp_path / "svc"
    svc_dir.mkdir()
    (svc_dir / "go.mod").write_text("module example.com/svc\n", encoding="utf-8")
    svc = ManifestDirectory(path=svc_dir, rel="svc")
    aggregator = Aggregator()

    aggregator.visit(_file(svc_dir / "api", _lib("api")), [], "svc/api", svc, [])
    [svc_rule] = aggregator.visit(_file(svc_dir, _lib("svc_lib")), [], "svc", svc, ["go.mod"])
    aggregator.visit(_file(tmp_path / "pkg", _lib("lib")), [], "pkg", root, [])
    [root_rule] = aggregator.visit(None, [], "", root, ["go.mod"])

    assert svc_rule.attr("module_path") == "example.com/svc"
    assert svc_rule.attr("deps") == ["//svc/api:api", ":svc_lib"]
    assert root_rule.attr("deps") == ["//pkg:lib"]


def test_rerunning_the_walk_reproduces_the_declaration(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    (tmp_path / "go.sum").write_text("", encoding="utf-8")
    visits: List[Visit] = [
        ("pkg/a", _file(tmp_path / "pkg" / "a", _lib("lib1")), [], []),
        ("", None, [], ["go.mod", "go.sum"]),
    ]
    aggregator = Aggregator()

    [first] = _fold(aggregator, root, visits)
    aggregator.reset()
    [second] = _fold(aggregator, root, visits)

    assert first.attrs == second.attrs
    assert first.name == second.name


def test_custom_settings_change_kinds_and_names(tmp_path: Path) -> None:
    (tmp_path / "MODULE").write_text("package example.com/custom\n", encoding="utf-8")
    settings = GoModConfig(
        manifest_file="MODULE",
        lock_file="MODULE.lock",
        module_directive="package",
        library_kinds=["cc_library"],
        rule_kind="module_group",
        rule_name="group",
    )
    governing = ManifestDirectory(path=tmp_path, rel="")
    existing = _file(tmp_path, Rule("cc_library", "core"), _lib("ignored"))

    [rule] = Aggregator(settings).visit(existing, [], "", governing, ["MODULE", "MODULE.lock"])

    assert rule.kind == "module_group"
    assert rule.name == "group"
    assert rule.attr("go_mod") == ":MODULE"
    assert rule.attr("go_sum") == ":MODULE.lock"
    assert rule.attr("deps") == [":core"]


def test_parallel_contributions_are_not_lost(tmp_path: Path) -> None:
    root = _demo_root(tmp_path)
    aggregator = Aggregator()

    def _contribute(index: int) -> None:
        rel = f"pkg/p{index:02d}"
        aggregator.visit(_file(tmp_path / rel, _lib("lib")), [], rel, root, [])

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_contribute, range(40)))

    [rule] = aggregator.visit(None, [], "", root, ["go.mod"])

    assert len(rule.attr("deps")) == 40
    assert rule.attr("deps")[0] == "//pkg/p00:lib"
