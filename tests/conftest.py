import pytest
from sanggwon_geo.config import Settings

DATA_API = "https://sdsc.test/sdsc2"
VWORLD_SEARCH = "https://vworld.test/req/search"
VWORLD_ADDRESS = "https://vworld.test/req/address"
VWORLD_WFS = "https://vworld.test/req/wfs"
SGIS = "https://sgis.test/OpenAPI3"


def make_settings(**overrides) -> Settings:
    values = {
        "data_api_key": "data-key",
        "vworld_key": "vworld-key",
        "sgis_service_id": "sgis-id",
        "sgis_secret_key": "sgis-secret",
        "data_api_base_url": DATA_API,
        "vworld_search_url": VWORLD_SEARCH,
        "vworld_address_url": VWORLD_ADDRESS,
        "vworld_wfs_url": VWORLD_WFS,
        "sgis_base_url": SGIS,
        "page_batch_delay_seconds": 0.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()
