import importlib


def test_app_imports_and_registers_routes():
    main = importlib.import_module("app.main")

    paths = {route.path for route in main.app.routes}
    assert {
        "/health",
        "/v1/guest-users",
        "/v1/conversations",
        "/v1/conversations/unread-count",
        "/v1/conversations/{conversation_id}",
        "/v1/messages",
        "/v1/admin/chat-stats",
        "/v1/ws",
    } <= paths


def test_typing_registry_class_builds():
    module = importlib.import_module("app.services.typing_registry")

    registry = module.TypingRegistry()
    assert registry.typing_in("c1") == set()
