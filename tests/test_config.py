"""
Tests for configuration settings.
"""
import pytest
from pydantic import ValidationError

from didattika.config.settings import Settings, get_settings, settings as global_settings
from didattika.config.personas import get_all_personas, get_persona_config, get_persona_prompt
from didattika.models.persona import PersonaType


def test_default_settings():
    """Test default configuration values."""
    settings = Settings()

    assert settings.app_name == "DIDATTIKA"
    assert settings.app_version == "0.1.0"
    assert settings.host == "0.0.0.0"
    assert settings.port == 8000
    assert settings.default_user_id == "current-user"
    assert settings.default_teacher_id == "current-teacher"


def test_settings_from_env(monkeypatch):
    """Test settings loaded from environment variables."""
    monkeypatch.setenv("APP_NAME", "Test App")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("DEBUG", "true")

    settings = Settings()

    assert settings.app_name == "Test App"
    assert settings.port == 9000
    assert settings.debug is True


def test_document_settings():
    """Test upload and processing settings."""
    settings = Settings()

    assert settings.max_file_size == 10 * 1024 * 1024
    assert settings.summary_max_sentences == 3
    assert settings.processing_timeout > 0


def test_chat_settings():
    settings = Settings()

    assert settings.chat_max_message_length == 1000
    assert settings.document_context_chars == 2000
    assert settings.response_delay_min == 0.8
    assert settings.response_delay_max == 2.2
    assert settings.openai_model == "gpt-4"


def test_max_tags_bounds(monkeypatch):
    monkeypatch.setenv("MAX_TAGS_PER_DOCUMENT", "25")

    with pytest.raises(ValidationError):
        Settings()


def test_get_settings_returns_global_instance():
    assert get_settings() is global_settings


class TestPersonaCatalog:
    """Persona catalog lookups"""

    def test_three_personas(self):
        personas = get_all_personas()
        assert [p.id for p in personas] == ["tutor", "docente", "coach"]

    def test_persona_details(self):
        tutor = get_persona_config(PersonaType.TUTOR)
        assert tutor.icon == "🎓"
        assert tutor.color == "blue"
        assert tutor.characteristics

        assert get_persona_config("docente").color == "yellow"
        assert get_persona_config("coach").color == "green"

    def test_prompt_lookup(self):
        assert "tutor" in get_persona_prompt(PersonaType.TUTOR).lower()

    def test_invalid_persona(self):
        with pytest.raises(ValueError):
            get_persona_config("wizard")

    def test_catalog_is_immutable(self):
        tutor = get_persona_config(PersonaType.TUTOR)
        with pytest.raises(ValidationError):
            tutor.color = "red"

    def test_public_view_hides_prompt(self):
        view = get_persona_config(PersonaType.COACH).public_view()
        assert "prompt" not in view
        assert view["displayName"]
