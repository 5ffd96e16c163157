import json
import threading

from licensa.core.report import ApplyResult, Outcome, ReportBuilder


def test_builder_sorts_and_counts():
    builder = ReportBuilder("write")
    builder.add(ApplyResult("b.py", Outcome.INSERTED))
    builder.add(ApplyResult("a.py", Outcome.FAILED, error="read failed: boom"))
    builder.add_scan_error(ApplyResult("c", Outcome.SKIPPED, reason="scan-error", error="unreadable directory"))
    report = builder.finalize()

    assert [r.path for r in report.results] == ["a.py", "b.py", "c"]
    assert report.counts["inserted"] == 1
    assert report.counts["non_compliant"] == 0
    assert report.count(Outcome.SKIPPED) == 1
    assert report.scan_errors == 1
    assert [(f.path, f.error) for f in report.failures] == [("a.py", "read failed: boom")]
    assert report.modified == ["b.py"]
    assert not report.ok


def test_ok_only_when_nothing_failed_or_non_compliant():
    builder = ReportBuilder("check")
    builder.add(ApplyResult("a.py", Outcome.ALREADY_COMPLIANT))
    builder.add(ApplyResult("b.bin", Outcome.SKIPPED, reason="unsupported"))
    assert builder.finalize().ok

    builder.add(ApplyResult("c.py", Outcome.NON_COMPLIANT, reason="absent"))
    assert not builder.finalize().ok


def test_as_dict_is_json_serializable():
    builder = ReportBuilder("check")
    builder.add(ApplyResult("x.py", Outcome.SKIPPED, reason="foreign", found_id="Apache-2.0"))
    data = json.loads(json.dumps(builder.finalize(timed_out=True).as_dict()))
    assert data["mode"] == "check"
    assert data["timed_out"] is True
    assert data["results"] == [
        {"path": "x.py", "outcome": "skipped", "reason": "foreign", "found_id": "Apache-2.0"}
    ]
    assert set(data["counts"]) == {o.value for o in Outcome}


def test_builder_is_thread_safe():
    builder = ReportBuilder("check")

    def worker(n):
        for i in range(200):
            builder.add(ApplyResult(f"{n}/{i:03d}", Outcome.ALREADY_COMPLIANT))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    report = builder.finalize()
    assert len(report.results) == 800
    assert report.counts["already_compliant"] == 800
