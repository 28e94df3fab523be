import pytest

from config import CreateRequest, EnhanceRequest, Settings, Style, load_api_key, save_api_key

ENV_VARS = (
    "GEMINI_API_KEY",
    "EBOOKGEN_TEXT_MODEL",
    "EBOOKGEN_IMAGE_MODEL",
    "EBOOKGEN_STRUCTURE_MODEL",
    "EBOOKGEN_MAX_ATTEMPTS",
    "EBOOKGEN_BASE_DELAY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in ENV_VARS:
        # set first so teardown restores whatever load_dotenv adds
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)


def test_settings_defaults():
    settings = Settings.from_env()
    assert settings == Settings()
    assert settings.text_model == "gemini-2.5-flash"
    assert settings.max_attempts == 5
    assert settings.base_delay == 1.0


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("EBOOKGEN_TEXT_MODEL", "custom-text")
    monkeypatch.setenv("EBOOKGEN_MAX_ATTEMPTS", "0")
    monkeypatch.setenv("EBOOKGEN_BASE_DELAY", "0.25")
    settings = Settings.from_env()
    assert settings.text_model == "custom-text"
    assert settings.max_attempts == 1
    assert settings.base_delay == 0.25


def test_api_key_missing_or_blank(monkeypatch):
    assert load_api_key() is None
    monkeypatch.setenv("GEMINI_API_KEY", "   ")
    assert load_api_key() is None


def test_save_api_key_writes_env_file(tmp_path, capsys):
    env_file = tmp_path / ".env"
    save_api_key("secret-123", env_file)
    assert "GEMINI_API_KEY" in env_file.read_text()
    assert "Saved GEMINI_API_KEY" in capsys.readouterr().out
    assert load_api_key(env_file) == "secret-123"


def test_create_request_defaults_validate():
    request = CreateRequest(topic="Bees")
    assert request.validate() is request
    assert (request.min_pages, request.max_pages, request.language) == (20, 30, "Português")


@pytest.mark.parametrize("kwargs", [
    dict(topic="   "),
    dict(topic="Bees", min_pages=0),
    dict(topic="Bees", min_pages=30, max_pages=20),
    dict(topic="Bees", language="Klingon"),
])
def test_create_request_rejects_bad_input(kwargs):
    with pytest.raises(ValueError):
        CreateRequest(**kwargs).validate()


def test_enhance_request(tmp_path):
    source = tmp_path / "draft.txt"
    source.write_text("hello", encoding="utf-8")
    assert EnhanceRequest(source=source, style=Style.MORE_CASUAL, language="English").validate()

    with pytest.raises(ValueError):
        EnhanceRequest(source=tmp_path / "missing.txt").validate()
    with pytest.raises(ValueError):
        EnhanceRequest(source=source, style="louder").validate()
    with pytest.raises(ValueError):
        EnhanceRequest(source=source, language="Deutsch").validate()
