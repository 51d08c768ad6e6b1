import json
import logging
import os

import pytest
import structlog

from event_logging import init_logging


@pytest.fixture
def run_dir(tmp_path):
    log_dir = init_logging(log_root=tmp_path)
    yield log_dir
    for name in ("quasi_newton", "simulation", None):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()


def _read_events(log_dir):
    for handler in logging.getLogger("quasi_newton").handlers:
        handler.flush()
    with open(os.path.join(log_dir, "run.jsonl")) as f:
        return [json.loads(line) for line in f if line.strip()]


def test_run_folder_is_created_under_root(run_dir, tmp_path):
    assert os.path.isdir(run_dir)
    assert os.path.dirname(run_dir) == str(tmp_path)


def test_stdlib_extra_fields_are_rendered_as_json(run_dir):
    logging.getLogger("quasi_newton.l_bfgs").info("probe_event", extra={"mem_pairs": 3})
    events = _read_events(run_dir)
    assert events[-1]["event"] == "probe_event"
    assert events[-1]["mem_pairs"] == 3
    assert events[-1]["level"] == "info"


def test_structlog_events_reach_the_run_file(run_dir):
    structlog.get_logger("quasi_newton.test").info("structured_probe", answer=42)
    events = _read_events(run_dir)
    assert events[-1]["event"] == "structured_probe"
    assert events[-1]["answer"] == 42
