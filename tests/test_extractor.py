import json
from unittest.mock import MagicMock

import pytest

from parsesm.errors import ParsesmError
from parsesm.extractor import SourceMapExtractor
from parsesm.writer import OutputWriter

from .conftest import ORIGIN, FakeFetcher, page, regular_map


def run(responses, console, **options):
    fetcher = FakeFetcher(responses)
    extractor = SourceMapExtractor(dict(origin=ORIGIN, **options), fetcher=fetcher, console=console)
    return extractor.run(), fetcher


def tree(root):
    return {
        str(p.relative_to(root)): p.read_text(encoding="utf-8")
        for p in sorted(root.rglob("*")) if p.is_file()
    }


def test_regular_map_happy_path(workdir, console):
    summary, _ = run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(
            ["webpack:///./src/a.js", "webpack:///./src/sub/b.js"], ["A", "B"]),
    }, console)

    assert tree(workdir / "out") == {
        "example.test/src/a.js": "A",
        "example.test/src/sub/b.js": "B",
    }
    assert summary.scripts == 1
    assert summary.maps_decoded == 1
    assert summary.files_written == 2


def test_indexed_map_flattened(workdir, console):
    indexed = json.dumps({"version": 3, "sections": [{
        "offset": {"line": 0, "column": 0},
        "map": json.loads(regular_map(["webpack:///./x.js"], ["X"])),
    }]})
    run({ORIGIN: page("/app.js"), ORIGIN + "/app.js.map": indexed}, console)

    assert tree(workdir / "out") == {"example.test/x.js": "X"}


def test_missing_contents_skipped(workdir, console):
    summary, _ = run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(["webpack:///./y.js", "webpack:///./z.js"], ["Y", None]),
    }, console)

    assert tree(workdir / "out") == {"example.test/y.js": "Y"}
    assert summary.missing_contents == 1


def test_cross_origin_script_not_fetched(workdir, console):
    summary, fetcher = run({ORIGIN: page("https://cdn.other/lib.js")}, console)

    assert fetcher.requested == [ORIGIN]
    assert summary.scripts == 0
    assert not (workdir / "out").exists()


def test_no_maps_available(workdir, console, console_buffer):
    summary, fetcher = run({ORIGIN: page("/a.js", "/b.js")}, console)

    assert fetcher.requested == [ORIGIN, ORIGIN + "/a.js.map", ORIGIN + "/b.js.map"]
    assert summary.maps_fetched == 0
    assert console_buffer.getvalue().strip() == "no sourcemaps found for 2 javascript files. exiting"
    assert not (workdir / "out").exists()


def test_collisions_are_concatenated(workdir, console):
    run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(["webpack:///./dup.js", "./dup.js"], ["first;", "second;"]),
    }, console)

    assert tree(workdir / "out") == {"example.test/dup.js": "first;second;"}


def test_unreachable_origin_writes_nothing(workdir, console, console_buffer):
    summary, fetcher = run({}, console)

    assert fetcher.requested == [ORIGIN]
    assert summary.origin_reachable is False
    assert console_buffer.getvalue() == ""
    assert not (workdir / "out").exists()


def test_bad_maps_do_not_stop_siblings(workdir, console):
    summary, _ = run({
        ORIGIN: page("/bad.js", "/hermes.js", "/good.js"),
        ORIGIN + "/bad.js.map": "<html>not a map</html>",
        ORIGIN + "/hermes.js.map": json.dumps({
            "version": 3, "sources": ["h.js"], "sourcesContent": ["H"],
            "mappings": "", "x_facebook_sources": [None],
        }),
        ORIGIN + "/good.js.map": regular_map(["webpack:///./g.js"], ["G"]),
    }, console)

    assert summary.maps_fetched == 3
    assert summary.maps_rejected == 2
    assert tree(workdir / "out") == {"example.test/g.js": "G"}


def test_write_errors_do_not_stop_iteration(workdir, console):
    summary, _ = run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(
            ["webpack:///./src/", "webpack:///./ok.js"], ["dir", "OK"]),
    }, console)

    assert summary.write_errors == 1
    assert tree(workdir / "out") == {"example.test/ok.js": "OK"}


def test_nul_in_path_does_not_stop_iteration(workdir, console):
    summary, _ = run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(
            ["webpack:///./a\u0000.js", "webpack:///./ok.js"], ["bad", "OK"]),
    }, console)

    assert summary.write_errors == 1
    assert tree(workdir / "out") == {"example.test/ok.js": "OK"}


def test_deeply_nested_map_does_not_stop_siblings(workdir, console):
    summary, _ = run({
        ORIGIN: page("/bad.js", "/good.js"),
        ORIGIN + "/bad.js.map": "[" * 100000 + "]" * 100000,
        ORIGIN + "/good.js.map": regular_map(["webpack:///./g.js"], ["G"]),
    }, console)

    assert summary.maps_rejected == 1
    assert tree(workdir / "out") == {"example.test/g.js": "G"}


def test_value_errors_are_counted(console):
    writer = MagicMock(spec=OutputWriter)
    writer.write.side_effect = [ValueError("embedded null byte"), "out/example.test/b.js"]
    extractor = SourceMapExtractor(
        {"origin": ORIGIN},
        fetcher=FakeFetcher({
            ORIGIN: page("/app.js"),
            ORIGIN + "/app.js.map": regular_map(["a.js", "b.js"], ["A", "B"]),
        }),
        writer=writer,
        console=console,
    )

    summary = extractor.run()
    assert summary.write_errors == 1
    assert summary.files_written == 1


def test_os_errors_are_counted(console):
    writer = MagicMock(spec=OutputWriter)
    writer.write.side_effect = [PermissionError("denied"), "out/example.test/b.js"]
    extractor = SourceMapExtractor(
        {"origin": ORIGIN},
        fetcher=FakeFetcher({
            ORIGIN: page("/app.js"),
            ORIGIN + "/app.js.map": regular_map(["a.js", "b.js"], ["A", "B"]),
        }),
        writer=writer,
        console=console,
    )

    summary = extractor.run()
    assert summary.write_errors == 1
    assert summary.files_written == 1
    assert writer.write.call_count == 2


def test_maps_written_in_document_order(workdir, console):
    run({
        ORIGIN: page("/second.js", "/first.js"),
        ORIGIN + "/second.js.map": regular_map(["shared.js"], ["2"]),
        ORIGIN + "/first.js.map": regular_map(["shared.js"], ["1"]),
    }, console)

    assert tree(workdir / "out") == {"example.test/shared.js": "21"}


def test_runs_are_deterministic(tmp_path, monkeypatch, console):
    responses = {
        ORIGIN: page("/app.js", "/vendor.js"),
        ORIGIN + "/app.js.map": regular_map(["webpack:///./src/a.js", "webpack:///./b.js"], ["A", "B"]),
        ORIGIN + "/vendor.js.map": regular_map(["webpack:///../node_modules/v/index.js"], ["V"]),
    }
    trees = []
    for name in ("one", "two"):
        run_dir = tmp_path / name
        run_dir.mkdir()
        monkeypatch.chdir(run_dir)
        run(responses, console)
        trees.append(tree(run_dir / "out"))

    assert trees[0] == trees[1]
    assert all(path.startswith("example.test/") for path in trees[0])


def test_output_directory_option(tmp_path, console):
    run({
        ORIGIN: page("/app.js"),
        ORIGIN + "/app.js.map": regular_map(["a.js"], ["A"]),
    }, console, output_directory=str(tmp_path / "elsewhere"))

    assert (tmp_path / "elsewhere" / "example.test" / "a.js").read_text(encoding="utf-8") == "A"


def test_origin_required(console):
    with pytest.raises(ParsesmError):
        SourceMapExtractor({}, fetcher=FakeFetcher({}), console=console)
