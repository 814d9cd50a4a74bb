"""
Tests for environment-driven settings.
"""

from pathlib import Path

from cet_dashboard.config import DEFINITIONS_DIR, PAGES, clamp_debounce, load_settings


def test_defaults():
    settings = load_settings({})
    assert settings.grid_config_dir == DEFINITIONS_DIR
    assert settings.text_filter_debounce_ms == 300
    assert settings.default_page_size == 25
    assert settings.spreadsheet_id is None
    assert settings.filter_state_file is None
    assert settings.log_level == "INFO"


def test_overrides():
    settings = load_settings(
        {
            "GRID_CONFIG_DIR": "/srv/grids",
            "TEXT_FILTER_DEBOUNCE_MS": "450",
            "DEFAULT_PAGE_SIZE": "50",
            "SPREADSHEET_ID": "abc",
            "GOOGLE_APPLICATION_CREDENTIALS": "/secrets/sa.json",
            "LOG_LEVEL": "debug",
            "FILTER_STATE_FILE": "/var/lib/cet/filters.json",
        }
    )
    assert settings.grid_config_dir == Path("/srv/grids")
    assert settings.text_filter_debounce_ms == 450
    assert settings.default_page_size == 50
    assert settings.spreadsheet_id == "abc"
    assert settings.google_credentials == "/secrets/sa.json"
    assert settings.log_level == "DEBUG"
    assert settings.filter_state_file == Path("/var/lib/cet/filters.json")


def test_bad_numbers_fall_back():
    settings = load_settings({"TEXT_FILTER_DEBOUNCE_MS": "soon", "DEFAULT_PAGE_SIZE": "0"})
    assert settings.text_filter_debounce_ms == 300
    assert settings.default_page_size == 1


def test_debounce_is_clamped():
    assert clamp_debounce(50) == 300
    assert clamp_debounce(400) == 400
    assert clamp_debounce(2000) == 500


def test_pages_have_definitions():
    for page in PAGES:
        assert (DEFINITIONS_DIR / f"{page.grid_name}.yaml").exists()
