import pytest

from caseledger.core.config import DEFAULT_MAX_UNDO_DEPTH, LedgerConfig
from caseledger.webserver.config import ServerConfig

ENV_VARS = (
    "CASELEDGER_DB_PATH",
    "CASELEDGER_MAX_UNDO_DEPTH",
    "CASELEDGER_STACK_PREVIEW_LIMIT",
    "CASELEDGER_BUSY_TIMEOUT",
    "CASELEDGER_LOG_DIR",
    "CASELEDGER_DEBUG",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        # set first so teardown also removes values load_dotenv adds
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    # keep python-dotenv from picking up a .env from the working directory
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults(clean_env, tmp_path):
    config = LedgerConfig.from_env(str(tmp_path / "missing.env"))
    assert config.max_undo_depth == DEFAULT_MAX_UNDO_DEPTH == 50
    assert config.db_path == "caseledger.db"
    assert config.debug is False


def test_environment_overrides(clean_env, tmp_path):
    clean_env.setenv("CASELEDGER_DB_PATH", "/data/ledger.db")
    clean_env.setenv("CASELEDGER_MAX_UNDO_DEPTH", "5")
    clean_env.setenv("CASELEDGER_DEBUG", "true")

    config = LedgerConfig.from_env(str(tmp_path / "missing.env"))

    assert config.db_path == "/data/ledger.db"
    assert config.max_undo_depth == 5
    assert config.debug is True


def test_dotenv_file(clean_env, tmp_path):
    env_file = tmp_path / "ledger.env"
    env_file.write_text("CASELEDGER_STACK_PREVIEW_LIMIT=3\n")

    config = LedgerConfig.from_env(str(env_file))

    assert config.stack_preview_limit == 3


def test_invalid_number_raises(clean_env, tmp_path):
    clean_env.setenv("CASELEDGER_MAX_UNDO_DEPTH", "many")
    with pytest.raises(ValueError):
        LedgerConfig.from_env(str(tmp_path / "missing.env"))


def test_dict_round_trip():
    config = LedgerConfig(db_path="x.db", max_undo_depth=7, debug=True)
    assert LedgerConfig.from_dict(config.to_dict()) == config


def test_server_config_carries_ledger_settings():
    ledger = LedgerConfig(db_path="x.db", max_undo_depth=7, stack_preview_limit=4)
    server = ServerConfig.from_ledger_config(ledger, port=9000)

    assert server.port == 9000
    assert server.ledger_config().max_undo_depth == 7
    assert server.ledger_config().db_path == "x.db"
