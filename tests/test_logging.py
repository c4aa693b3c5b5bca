# ------------------------------------------------------------------------------
#  CollectiPy
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of CollectyPy, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import csv
import logging
import zipfile

import pytest

from dronesim.logging_utils import configure_logging, get_logger


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    for handler in logging.getLogger().handlers:
        handler.close()
    logging.basicConfig(handlers=[logging.NullHandler()], force=True)


def test_get_logger_namespace():
    assert get_logger("physics").name == "sim.physics"
    assert get_logger("").name == "sim"


def test_disabled_logging_creates_nothing(tmp_path):
    assert configure_logging({}, project_root=tmp_path) is None
    assert not (tmp_path / "logs").exists()


def test_file_logging_is_lazy_and_archived(tmp_path):
    config = tmp_path / "sim.json"
    config.write_text("{}")
    archive = configure_logging({"enabled": True, "level": "DEBUG", "to_console": False},
                                config_path=config, project_root=tmp_path)
    assert archive.parent == (tmp_path / "logs").resolve()
    assert not archive.exists()

    get_logger("test").info("first record")
    for handler in logging.getLogger().handlers:
        handler.close()

    with zipfile.ZipFile(archive) as bundle:
        [name] = bundle.namelist()
        text = bundle.read(name).decode("utf-8")
    assert "sim.test" in text
    assert "first record" in text
    copies = list((tmp_path / "logs" / "configs").iterdir())
    assert len(copies) == 1
    with (tmp_path / "logs" / "logs_configs_mapping.csv").open() as handle:
        rows = list(csv.reader(handle))
    assert rows[0] == ["hash", "log_path"]
    assert rows[1][1].endswith(archive.name)


def test_level_strings():
    configure_logging({"level": "error", "to_console": True})
    assert logging.getLogger("sim").level == logging.ERROR
