import pytest

from affectedmodules.config import AffectedModuleConfiguration
from affectedmodules.dependencies import DependencyTracker
from affectedmodules.errors import ConfigError, UsageError
from affectedmodules.impact import AcceptAll, AffectedModuleDetector, ProjectSubset
from affectedmodules.ownership import Module, ModuleGraph, ModulePath

P1, P2, P3, P4, P5, P6 = (ModulePath(p) for p in (":p1", ":p2", ":p1:p3", ":p1:p3:p4", ":p2:p5", ":p1:p3:p6"))
P7, P8, P9, P10 = (ModulePath(p) for p in (":p7", ":cobuilt1", ":cobuilt2", ":benchmark"))
ALL = {P1, P2, P3, P4, P5, P6, P7, P8, P9, P10}

GLOBAL_PATHS = ("tools/android/buildSrc", "android/gradlew", "android/gradle", "dbx/core/api")

#      root -------------------
#     /    \     |    |   |   |
#   p1     p2    p7  p8  p9  p10
#  /      /  \
# p3 --- p5   p6
# /
# p4
LIBRARY = [
    (P1, "d1", ()),
    (P2, "d2", ()),
    (P3, "d1/d3", (P1,)),
    (P4, "d1/d3/d4", (P3,)),
    (P5, "d2/d5", (P2, P3)),
    (P6, "d1/d3/d6", (P2,)),
    (P7, "d7", ()),
    (P8, "d8", ()),
    (P9, "d9", ()),
    (P10, "d10", ()),
]


@pytest.fixture
def library(tmp_path):
    for p in GLOBAL_PATHS:
        (tmp_path / p).mkdir(parents=True)
    return [Module(path, tmp_path / d, deps) for path, d, deps in LIBRARY]


def _config(tmp_path, **kwargs):
    kwargs.setdefault("base_dir", tmp_path)
    kwargs.setdefault("paths_affecting_all_modules", GLOBAL_PATHS)
    return AffectedModuleConfiguration(**kwargs)


def _detector(tmp_path, modules, changed, subset=ProjectSubset.ALL_AFFECTED, config=None, allow_list=None):
    return AffectedModuleDetector(
        graph=ModuleGraph.build(modules, root_dir=tmp_path, vcs_root=tmp_path),
        tracker=DependencyTracker.build(modules),
        config=config or _config(tmp_path),
        changed_files=changed,
        subset=subset,
        modules=allow_list,
        vcs_root=tmp_path,
    )


def test_no_changes_builds_everything(tmp_path, library):
    assert _detector(tmp_path, library, []).affected_modules == ALL
    assert _detector(tmp_path, library, [], ProjectSubset.DEPENDENT).affected_modules == ALL


def test_no_changes_changed_subset_is_empty(tmp_path, library):
    detector = _detector(tmp_path, library, [], ProjectSubset.CHANGED)
    assert detector.affected_modules == set()
    assert not detector.has_affected_modules()


def test_no_changes_without_build_all_is_empty(tmp_path, library):
    config = _config(tmp_path, build_all_when_no_modules_changed=False)
    assert _detector(tmp_path, library, [], config=config).affected_modules == set()
    assert _detector(tmp_path, library, [], ProjectSubset.DEPENDENT, config=config).affected_modules == set()


def test_change_in_one(tmp_path, library):
    changed = ["d1/foo.java"]
    assert _detector(tmp_path, library, changed).affected_modules == {P1, P3, P4, P5}
    assert _detector(tmp_path, library, changed, ProjectSubset.DEPENDENT).affected_modules == {P3, P4, P5}
    assert _detector(tmp_path, library, changed, ProjectSubset.CHANGED).affected_modules == {P1}


def test_change_in_two(tmp_path, library):
    changed = ["d1/foo.java", "d2/bar.java"]
    assert _detector(tmp_path, library, changed).affected_modules == {P1, P2, P3, P4, P5, P6}
    assert _detector(tmp_path, library, changed, ProjectSubset.CHANGED).affected_modules == {P1, P2}


def test_change_deep_below_module_root(tmp_path, library):
    detector = _detector(tmp_path, library, ["d7/src/main/java/Foo.java"], ProjectSubset.CHANGED)
    assert detector.affected_modules == {P7}


def test_root_file_is_unknown_and_prevents_build_all(tmp_path, library):
    detector = _detector(tmp_path, library, ["gradle.properties"])
    assert detector.changed_modules == set()
    assert detector.unknown_files == ["gradle.properties"]
    assert detector.affected_modules == set()


def test_global_path_marks_every_module_changed(tmp_path, library):
    changed = ["tools/android/buildSrc/foo.java"]
    for subset in (ProjectSubset.ALL_AFFECTED, ProjectSubset.DEPENDENT, ProjectSubset.CHANGED):
        detector = _detector(tmp_path, library, changed, subset)
        assert detector.changed_modules == ALL
    assert _detector(tmp_path, library, changed, ProjectSubset.CHANGED).affected_modules == ALL
    assert _detector(tmp_path, library, changed).affected_modules == ALL


def test_global_path_matches_by_segment_not_string_prefix(tmp_path, library):
    detector = _detector(tmp_path, library, ["android/gradle2/test.java"], ProjectSubset.CHANGED)
    assert detector.affected_modules == set()
    assert detector.unknown_files == ["android/gradle2/test.java"]


def test_global_path_relative_to_nested_base_dir(tmp_path, library):
    (tmp_path / "android" / "gradle").mkdir(parents=True, exist_ok=True)
    config = AffectedModuleConfiguration(base_dir=tmp_path / "android", paths_affecting_all_modules=["gradle"])
    detector = _detector(tmp_path, library, ["android/gradle/wrapper.properties"], config=config)
    assert detector.changed_modules == ALL


def test_missing_global_path_fails_at_resolution(tmp_path, library):
    config = AffectedModuleConfiguration(base_dir=tmp_path, paths_affecting_all_modules=["invalid"])
    detector = _detector(tmp_path, library, ["d1/foo.java"], config=config)
    with pytest.raises(ConfigError, match="Could not find expected path in paths_affecting_all_modules: invalid"):
        detector.affected_modules


def test_chain_scenario(tmp_path):
    a, b, c = ModulePath(":a"), ModulePath(":b"), ModulePath(":c")
    modules = [
        Module(a, tmp_path / "a"),
        Module(b, tmp_path / "b", (a,)),
        Module(c, tmp_path / "c", (b,)),
    ]
    detector = _detector(tmp_path, modules, ["a/src/A.kt"], config=AffectedModuleConfiguration())
    assert detector.changed_modules == {a}
    assert detector.dependent_modules == {b, c}
    assert detector.affected_modules == {a, b, c}
    assert detector.get_subset(a) is ProjectSubset.CHANGED
    assert detector.get_subset(b) is ProjectSubset.DEPENDENT
    assert detector.get_subset(c) is ProjectSubset.DEPENDENT


def test_changed_takes_priority_over_dependent(tmp_path, library):
    detector = _detector(tmp_path, library, ["d1/foo.java", "d1/d3/bar.java"])
    assert P3 in detector.dependent_modules
    assert detector.get_subset(P3) is ProjectSubset.CHANGED
    assert detector.get_subset(P4) is ProjectSubset.DEPENDENT
    assert detector.get_subset(P7) is ProjectSubset.NONE


def test_changed_subset_always_within_changed_modules(tmp_path, library):
    for changed in ([], ["d1/foo.java"], ["README.md"], ["d2/x", "d9/y"]):
        detector = _detector(tmp_path, library, changed, ProjectSubset.CHANGED)
        assert detector.affected_modules <= detector.changed_modules
        for m in ALL:
            if detector.get_subset(m) is ProjectSubset.CHANGED:
                assert m in _detector(tmp_path, library, changed).affected_modules


def test_excluded_module_is_never_included_but_dependents_are(tmp_path, library):
    config = _config(tmp_path, excluded_modules={":p1"})
    detector = _detector(tmp_path, library, ["d1/foo.java"], config=config)
    assert P1 in detector.affected_modules
    assert not detector.should_include(P1)
    assert detector.should_include(P3)
    assert detector.should_include(P5)


def test_excluded_module_by_regex(tmp_path, library):
    config = _config(tmp_path, excluded_modules={":p1:p3:[a-zA-Z0-9:]+"})
    detector = _detector(tmp_path, library, ["d1/d3/foo.java"], config=config)
    assert detector.should_include(P3)
    assert not detector.should_include(P4)
    assert detector.should_include(P5)
    assert not detector.should_include(P6)


def test_allow_list_restricts_inclusion(tmp_path, library):
    detector = _detector(tmp_path, library, ["d1/d3/foo.java"], allow_list={":p1:p3"})
    assert detector.should_include(P3)
    assert not detector.should_include(P5)
    assert detector.included_modules() == [P3]


def test_empty_allow_list_includes_nothing(tmp_path, library):
    detector = _detector(tmp_path, library, ["d1/d3/foo.java"], allow_list=set())
    assert detector.affected_modules
    assert detector.included_modules() == []


def test_none_is_not_a_query_subset(tmp_path, library):
    with pytest.raises(UsageError):
        _detector(tmp_path, library, [], ProjectSubset.NONE)


def test_roots_resolve_independently(tmp_path):
    main_root, ui_root = tmp_path / "main", tmp_path / "ui"
    bench_dir = main_root / "d10"
    p7, bench_main = ModulePath(":p7"), ModulePath(":benchmark")
    compose, bench_ui = ModulePath(":compose"), ModulePath(":ui:benchmark")
    main_modules = [Module(bench_main, bench_dir), Module(p7, main_root / "d7", (bench_main,))]
    ui_modules = [Module(bench_ui, bench_dir), Module(compose, ui_root / "compose", (bench_ui,))]
    config = AffectedModuleConfiguration()

    def detector(root, modules):
        return AffectedModuleDetector(
            graph=ModuleGraph.build(modules, root_dir=root, vcs_root=tmp_path),
            tracker=DependencyTracker.build(modules),
            config=config,
            changed_files=["main/d10/Bench.kt"],
            vcs_root=tmp_path,
        )

    assert detector(main_root, main_modules).affected_modules == {bench_main, p7}
    assert detector(ui_root, ui_modules).affected_modules == {bench_ui, compose}


def test_changed_submodule_affects_every_module_inside(tmp_path):
    (tmp_path / ".gitmodules").write_text(
        '[submodule "libs/my-submodule"]\n\tpath = libs/my-submodule\n', encoding="utf-8"
    )
    inner = ModulePath(":module-a")
    modules = [Module(inner, tmp_path / "libs" / "my-submodule" / "module-a"), Module(ModulePath(":app"), tmp_path / "app")]
    detector = _detector(
        tmp_path, modules, ["libs/my-submodule"], ProjectSubset.CHANGED, config=AffectedModuleConfiguration()
    )
    assert detector.affected_modules == {inner}


def test_report_summarizes_the_run(tmp_path, library):
    report = _detector(tmp_path, library, ["d1/foo.java", "d1/foo.java", "notes.txt"]).report()
    assert report.changed_files == ["d1/foo.java", "notes.txt"]
    assert report.changed_modules == [P1]
    assert report.dependent_modules == sorted([P3, P4, P5])
    assert report.affected_modules == sorted([P1, P3, P4, P5])
    assert report.unknown_files == ["notes.txt"]
    assert not report.build_all


def test_accept_all(tmp_path, library):
    detector = AcceptAll(ModuleGraph.build(library, root_dir=tmp_path))
    assert detector.should_include(P7)
    assert detector.get_subset(P7) is ProjectSubset.CHANGED
    assert detector.has_affected_modules()
    assert detector.included_modules() == sorted(ALL)


def _shared_directory(tmp_path):
    (tmp_path / "buildSrc").mkdir()
    app, app_test, core = ModulePath(":app"), ModulePath(":app-test"), ModulePath(":core")
    modules = [Module(app, tmp_path / "app"), Module(app_test, tmp_path / "app"), Module(core, tmp_path / "core")]
    return modules, {app, app_test, core}


def test_build_all_keeps_modules_sharing_a_directory(tmp_path):
    modules, every = _shared_directory(tmp_path)
    detector = _detector(tmp_path, modules, [], config=AffectedModuleConfiguration())
    assert detector.build_all
    assert detector.affected_modules == every


def test_global_change_keeps_modules_sharing_a_directory(tmp_path):
    modules, every = _shared_directory(tmp_path)
    config = AffectedModuleConfiguration(base_dir=tmp_path, paths_affecting_all_modules=["buildSrc"])
    detector = _detector(tmp_path, modules, ["buildSrc/x.kt"], ProjectSubset.CHANGED, config=config)
    assert detector.changed_modules == every
    assert detector.affected_modules == every


def test_accept_all_keeps_modules_sharing_a_directory(tmp_path):
    modules, every = _shared_directory(tmp_path)
    assert AcceptAll(ModuleGraph.build(modules, root_dir=tmp_path)).affected_modules == every


def test_global_path_ignores_files_outside_base_dir(tmp_path, library):
    (tmp_path / "a" / "b" / "c").mkdir(parents=True)
    config = AffectedModuleConfiguration(base_dir=tmp_path / "a" / "b", paths_affecting_all_modules=["c"])
    detector = _detector(tmp_path, library, ["a/c/x.kt"], ProjectSubset.CHANGED, config=config)
    assert detector.changed_modules == set()
    assert _detector(tmp_path, library, ["a/b/c/x.kt"], config=config).changed_modules == ALL
