import json

import pytest

from settings import DEFAULT_SETTINGS, get_app_home, get_settings, load_config, save_config, set_port


def test_app_home_from_environment(monkeypatch, tmp_path):
	monkeypatch.setenv('VIDEO_SORTER_HOME', str(tmp_path))
	assert get_app_home() == str(tmp_path)


def test_defaults_without_config(tmp_path):
	assert get_settings(str(tmp_path)) == DEFAULT_SETTINGS


def test_config_overrides_defaults(tmp_path):
	(tmp_path / 'config.json').write_text(json.dumps({'port': 4000, 'bogus': 1}), encoding='utf-8')
	settings = get_settings(str(tmp_path))
	assert settings['port'] == 4000
	assert 'bogus' not in settings


def test_unreadable_config_is_ignored(tmp_path):
	(tmp_path / 'config.json').write_text('[1, 2', encoding='utf-8')
	assert load_config(str(tmp_path)) == {}


def test_save_and_set_port(tmp_path):
	assert save_config({'poll_interval': 5}, str(tmp_path))
	assert set_port('8080', str(tmp_path)) == 8080
	assert load_config(str(tmp_path)) == {'poll_interval': 5, 'port': 8080}


@pytest.mark.parametrize('port', [0, 70000, 'abc'])
def test_set_port_rejects_bad_values(tmp_path, port):
	with pytest.raises(ValueError):
		set_port(port, str(tmp_path))
