import logging
import os
from unittest.mock import patch

import pytest

from caseledger.core.config import LedgerConfig
from caseledger.core.logging_config import LOG_FILENAME, setup_logging, shutdown_logging
from caseledger.webserver import runner


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)
    # load_dotenv writes into os.environ
    for name in ("CASELEDGER_LOG_DIR", "CASELEDGER_MAX_UNDO_DEPTH"):
        os.environ.pop(name, None)


def test_setup_logging_writes_to_log_dir(tmp_path, restore_root_logger):
    config = LedgerConfig(db_path=":memory:", log_dir=str(tmp_path), debug=True)
    path = setup_logging(config, console=False)

    logging.getLogger("caseledger.test").debug("hello", extra={"scope": "acme"})
    logging.getLogger("caseledger.test").info("no scope")
    shutdown_logging()

    assert path == str(tmp_path / LOG_FILENAME)
    assert logging.getLogger().level == logging.DEBUG
    lines = (tmp_path / LOG_FILENAME).read_text(encoding="utf-8").splitlines()
    assert lines[-2].endswith("[acme] caseledger.test: hello")
    assert lines[-1].endswith("[-] caseledger.test: no scope")


def test_setup_logging_replaces_only_its_own_handlers(tmp_path, restore_root_logger):
    foreign = logging.NullHandler()
    logging.getLogger().addHandler(foreign)
    existing = list(logging.getLogger().handlers)
    config = LedgerConfig(db_path=":memory:", log_dir=str(tmp_path))

    setup_logging(config, console_level=logging.WARNING)
    setup_logging(config, console_level=logging.WARNING)
    handlers = logging.getLogger().handlers
    owned = [h for h in handlers if h not in existing]

    assert foreign in handlers
    assert len(owned) == 2
    assert sorted(h.level for h in owned) == [logging.INFO, logging.WARNING]

    shutdown_logging()
    assert [h for h in logging.getLogger().handlers if h in owned] == []
    assert foreign in logging.getLogger().handlers


def test_main_builds_server_from_arguments(tmp_path, restore_root_logger):
    env_file = tmp_path / "server.env"
    env_file.write_text(f"CASELEDGER_LOG_DIR={tmp_path / 'logs'}\nCASELEDGER_MAX_UNDO_DEPTH=9\n")

    with patch.object(runner, "build_server") as build:
        runner.main(
            ["--port", "9100", "--database", str(tmp_path / "x.db"), "--env-file", str(env_file)]
        )

    config = build.call_args[0][0]
    assert config.port == 9100
    assert config.db_path == str(tmp_path / "x.db")
    assert config.max_undo_depth == 9
    build.return_value.run.assert_called_once()


def test_main_exits_when_port_is_taken(tmp_path, restore_root_logger):
    env_file = tmp_path / "server.env"
    env_file.write_text(f"CASELEDGER_LOG_DIR={tmp_path / 'logs'}\n")

    with patch.object(runner, "build_server") as build:
        build.return_value.run.side_effect = OSError(98, "Address already in use")
        with pytest.raises(SystemExit) as e:
            runner.main(["--env-file", str(env_file)])

    assert e.value.code == 1
