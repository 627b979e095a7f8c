from conftest import make_settings
from sanggwon_geo.config import KEY_PLACEHOLDERS, Settings


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("SANGGWON_GEO_DATA_API_KEY", "  env-key ")
    monkeypatch.setenv("SANGGWON_GEO_PAGE_SIZE", "100")
    monkeypatch.setenv("SANGGWON_GEO_RELAY_URL_TEMPLATES", '["https://relay.test/?u={url}"]')

    settings = Settings(_env_file=None)

    assert settings.credential("data_api_key") == "env-key"
    assert settings.page_size == 100
    assert settings.relay_url_templates == ["https://relay.test/?u={url}"]
    assert "env-key" not in repr(settings)


def test_proxied_mode_uses_placeholders():
    settings = make_settings(use_key_proxy=True, key_proxy_url="https://proxy.test/fetch", vworld_key="")
    assert settings.credential("vworld_key") == KEY_PLACEHOLDERS["vworld_key"]
    assert settings.credential("sgis_service_id") == "CONFIDENTIAL_SGIS_ID"
    assert settings.has_credential("vworld_key")


def test_missing_credential():
    settings = make_settings(vworld_key="   ")
    assert settings.credential("vworld_key") == ""
    assert not settings.has_credential("vworld_key")
