import dataclasses

import pytest

import dealbot.workers as workers
from dealbot.mappings import MappingStore
from dealbot.promo import PROMOTIONAL_MESSAGES

FLIPKART = "https://www.flipkart.com/item/p/xyz"


@pytest.fixture
def use_settings(monkeypatch, settings):
    def _use(**overrides):
        s = dataclasses.replace(settings, **overrides)
        monkeypatch.setattr(workers, "get_settings", lambda: s)
        return s
    return _use


@pytest.fixture
def no_network(monkeypatch):
    calls = {"image": [], "forward": []}

    def fake_image(text):
        calls["image"].append(text)
        return "https://img.example/p.jpg"

    def fake_forward(text, urls, *, image_url=None, min_delay_ms=0):
        calls["forward"].append((text, tuple(urls), image_url))
        return len(tuple(urls))

    monkeypatch.setattr(workers, "get_product_image", fake_image)
    monkeypatch.setattr(workers, "forward_message", fake_forward)
    return calls


class TestConvertMessageJob:
    def test_full_pipeline(self, use_settings, no_network):
        use_settings(
            promo_enabled=True,
            image_lookup_enabled=True,
            forward_webhook_urls=("https://hook.example/a",),
        )
        out = workers.convert_message_job(f"Shoes {FLIPKART}", source="chan")
        assert out["text"].startswith(f"Shoes {FLIPKART}?affid=E123")
        assert any(msg in out["text"] for msg in PROMOTIONAL_MESSAGES)
        assert out["image_url"] == "https://img.example/p.jpg"
        assert out["stats"]["earnpe"] == 1
        assert out["delivered"] == 1
        # image comes from the unconverted link
        assert no_network["image"] == [f"Shoes {FLIPKART}"]
        assert no_network["forward"] == [(out["text"], ("https://hook.example/a",), "https://img.example/p.jpg")]

    def test_extras_switched_off(self, use_settings, no_network, log_lines):
        use_settings(promo_enabled=False, image_lookup_enabled=False)
        out = workers.convert_message_job(FLIPKART)
        assert out["text"] == f"{FLIPKART}?affid=E123"
        assert out["image_url"] is None
        assert out["delivered"] == 0
        assert no_network["image"] == []
        assert any("FORWARD_WEBHOOK_URLS not set" in line for line in log_lines)

    def test_no_forward(self, use_settings, no_network):
        use_settings(promo_enabled=False, image_lookup_enabled=False, forward_webhook_urls=("https://h/a",))
        out = workers.convert_message_job(FLIPKART, forward=False)
        assert out["delivered"] == 0
        assert no_network["forward"] == []


class TestGetConverter:
    def test_single_instance(self, settings):
        assert workers.get_converter(settings) is workers.get_converter()

    def test_api_converter_single_instance(self, settings, tmp_path):
        s = dataclasses.replace(settings, api_mappings_path=str(tmp_path / "api.json"))
        assert workers.get_api_converter(s) is workers.get_api_converter()


class TestMappingFileOwnership:
    """The API and the RQ worker each own one mappings file."""

    @pytest.fixture
    def split_settings(self, settings, tmp_path):
        return dataclasses.replace(
            settings,
            mappings_path=str(tmp_path / "url_mappings.json"),
            api_mappings_path=str(tmp_path / "url_mappings.api.json"),
        )

    def test_api_and_worker_write_different_files(self, split_settings):
        worker_conv = workers.get_converter(split_settings)
        api_conv = workers.get_api_converter(split_settings)
        assert worker_conv.get_url_mappings().path != api_conv.get_url_mappings().path

    def test_no_records_lost_between_processes(self, split_settings):
        worker_conv = workers.get_converter(split_settings)
        api_conv = workers.get_api_converter(split_settings)
        worker_conv.convert_all("https://www.nykaa.com/lipstick/p/1")
        api_conv.convert_all("https://www.croma.com/tv/p/2")
        worker_conv.convert_all("https://www.nykaa.com/kajal/p/3")

        on_disk = MappingStore(split_settings.mappings_path)
        on_disk.load()
        api_on_disk = MappingStore(split_settings.api_mappings_path)
        api_on_disk.load()
        assert sorted(r.original_url for r in on_disk) == [
            "https://www.nykaa.com/kajal/p/3",
            "https://www.nykaa.com/lipstick/p/1",
        ]
        assert [r.original_url for r in api_on_disk] == ["https://www.croma.com/tv/p/2"]

    def test_shared_path_refused(self, settings):
        shared = dataclasses.replace(settings, api_mappings_path=settings.mappings_path)
        with pytest.raises(RuntimeError, match="API_URL_MAPPINGS_PATH"):
            workers.get_api_converter(shared)
