import pytest

from cm_orders.config import Config


@pytest.fixture
def valid_config(monkeypatch):
    monkeypatch.setattr(Config, "HOME_URL", "https://www.cardmarket.com/en/OnePiece")
    monkeypatch.setattr(Config, "LOGIN_URL", "https://www.cardmarket.com/en/OnePiece/Login")
    monkeypatch.setattr(Config, "USERNAME", "jane")
    monkeypatch.setattr(Config, "PASSWORD", "secret")
    monkeypatch.setattr(Config, "CRAWL_WINDOW_DAYS", 30)
    monkeypatch.setattr(Config, "CRAWL_OVERLAP_DAYS", 15)


def test_valid_config(valid_config):
    Config.validate()


def test_missing_credentials(valid_config, monkeypatch):
    monkeypatch.setattr(Config, "PASSWORD", None)

    with pytest.raises(ValueError, match="CARDMARKET_PASSWORD"):
        Config.validate()
    Config.validate(require_credentials=False)


def test_overlap_must_be_smaller_than_window(valid_config, monkeypatch):
    monkeypatch.setattr(Config, "CRAWL_OVERLAP_DAYS", 30)

    with pytest.raises(ValueError, match="CRAWL_OVERLAP_DAYS"):
        Config.validate(require_credentials=False)
