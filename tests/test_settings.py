"""
Tests for settings loading.
"""
import pytest

from bracket.errors import StorageError
from bracket.settings import get_default_settings, load_settings, save_settings


class TestSettings:
    """Tests for load_settings and save_settings."""

    def test_defaults_without_file(self, tmp_path):
        assert load_settings(str(tmp_path)) == get_default_settings()

    def test_partial_file_merged_with_defaults(self, tmp_path):
        (tmp_path / 'settings.yaml').write_text(
            'max_bracket_size: 32\nranking_weights:\n  championships: 10\n'
        )
        settings = load_settings(str(tmp_path))
        assert settings['max_bracket_size'] == 32
        assert settings['min_bracket_size'] == 4
        assert settings['ranking_weights']['championships'] == 10
        assert settings['ranking_weights']['participants'] == 0.3

    def test_empty_file(self, tmp_path):
        (tmp_path / 'settings.yaml').write_text('')
        assert load_settings(str(tmp_path)) == get_default_settings()

    def test_save_then_load(self, tmp_path):
        settings = get_default_settings()
        settings['ranking_limit'] = 10
        save_settings(str(tmp_path / 'new'), settings)
        assert load_settings(str(tmp_path / 'new'))['ranking_limit'] == 10

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / 'settings.yaml').write_text('ranking_weights: {oops')
        with pytest.raises(StorageError):
            load_settings(str(tmp_path))
