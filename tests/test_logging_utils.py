from quizcrawl.crawler import logging_utils


def test_crawler_event_label_and_phase(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._crawler_event("state", phase="batch", job_id="abc")

    assert events
    line = events[-1]
    assert line.startswith("[CRAWLER][STATE]")
    assert "phase='batch'" in line
    assert "job_id='abc'" in line


def test_phase_alone_becomes_label(monkeypatch):
    events: list[str] = []
    monkeypatch.setattr(logging_utils, "log_line", lambda msg: events.append(msg))

    logging_utils._crawler_event(phase="login", outcome="navigated")

    assert events == ["[CRAWLER][LOGIN] outcome='navigated'"]
