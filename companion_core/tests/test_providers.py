from companion_core.providers import create_image_provider, create_provider
from companion_core.providers.gateway_client import GatewayClient
from companion_core.providers.gemini_client import GeminiClient
from companion_core.providers.qwen_client import QwenClient
from companion_core.providers.registry import GEMINI_CONFIG, QWEN_CONFIG


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "gateway"
        gateway_url = "http://127.0.0.1:8000/api/chat"
        http_timeout = 1.0

    monkeypatch.setattr("companion_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GatewayClient)


def test_create_provider_explicit(monkeypatch):
    class DummySettings:
        default_provider = "gateway"
        qwen_api_key = "sk-test-0123456789"
        gemini_api_key = None
        http_timeout = 1.0

    monkeypatch.setattr("companion_core.providers.settings", DummySettings())
    assert isinstance(create_provider("qwen"), QwenClient)
    assert isinstance(create_provider("Gemini"), GeminiClient)


def test_image_provider_is_gemini():
    class DummySettings:
        gemini_api_key = None

    # 凭证缺失要到真正调用时才报错
    assert isinstance(create_image_provider(DummySettings()), GeminiClient)


def test_registry_resolves_logical_names():
    qwen = QWEN_CONFIG
    assert qwen.resolve("reply") == "qwen-plus"
    assert qwen.resolve("qwen-max") == "qwen-max"
    assert GEMINI_CONFIG.resolve("image") == "gemini-2.5-flash-image"
