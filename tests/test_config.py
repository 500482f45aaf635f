import yaml

from sevensons.config import (
    Config,
    ProviderCredential,
    RoleConfig,
    apply_environment,
    create_sample_config,
    load_config,
    parse_config,
    save_config,
)


def test_defaults_without_file(tmp_path):
    config = load_config(tmp_path / "missing", environ={})

    assert config.demo_mode is False
    assert config.batch_size == 3
    assert config.request_timeout_ms == 30000
    assert config.provider_credentials == {}


def test_parse_yaml_sections():
    config = parse_config({
        "demo_mode": True,
        "history_limit": 8,
        "providers": {"ChatAnywhere": {"api_key": "sk-abcdefghij", "host": "https://proxy.example"}},
        "group_chat": {"batch_size": 2, "batch_delay_ms": 500, "respond_only_relevant": True},
        "roles": {"李白": {"provider": "openai", "temperature": 0.9, "active": False}},
    })

    assert config.demo_mode is True
    assert config.history_limit == 8
    assert config.provider_credentials["chatanywhere"].host == "https://proxy.example"
    assert config.batch_size == 2
    assert config.batch_delay_ms == 500
    assert config.respond_only_relevant is True
    assert config.role_configs["李白"].temperature == 0.9
    assert config.role_configs["李白"].active is False


def test_environment_overrides(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.dump({"group_chat": {"batch_size": 4}}), encoding="utf-8")

    config = load_config(path, environ={
        "DEMO_MODE": "TRUE",
        "GROUP_CHAT_BATCH_SIZE": "2",
        "GROUP_CHAT_DELAY_MS": "1500",
        "GROUP_CHAT_FIRST_DELAY_MS": "800",
        "GROUP_CHAT_ROLE_TIMEOUT_MS": "15000",
        "OPENAI_API_KEY": "sk-" + "b" * 30,
        "DMXAPI_API_HOST": "https://dmx.example",
        "SEVENSONS_DB_PATH": "/tmp/x.db",
    })

    assert config.demo_mode is True
    assert config.batch_size == 2
    assert config.per_role_delay_ms == 1500
    assert config.first_message_delay_ms == 800
    assert config.request_timeout_ms == 15000
    assert config.provider_credentials["openai"].api_key == "sk-" + "b" * 30
    assert config.provider_credentials["dmxapi"] == ProviderCredential(api_key=None, host="https://dmx.example")
    assert config.db_path == "/tmp/x.db"


def test_demo_mode_env_is_exact_true(tmp_path):
    assert load_config(tmp_path / "missing", environ={"DEMO_MODE": "yes"}).demo_mode is False
    assert load_config(tmp_path / "missing", environ={"DEMO_MODE": "true"}).demo_mode is True


def test_demo_mode_env_can_disable_file_setting():
    config = parse_config({"demo_mode": True})

    apply_environment(config, {"DEMO_MODE": "false"})

    assert config.demo_mode is False


def test_non_integer_tunable_falls_back(caplog):
    config = parse_config({"group_chat": {"batch_size": "lots"}})
    assert config.batch_size == 3
    assert "lots" in caplog.text


def test_orchestrator_config_clamps_values():
    config = Config(batch_size=0, per_role_delay_ms=-5, request_timeout_ms=0)

    orchestrator_config = config.orchestrator_config()

    assert orchestrator_config.batch_size == 1
    assert orchestrator_config.per_role_delay_ms == 0
    assert orchestrator_config.request_timeout_ms == 1


def test_orchestrator_config_hosts():
    config = Config(provider_credentials={"dmxapi": ProviderCredential(host="https://mine.example")})
    orchestrator_config = config.orchestrator_config()

    assert orchestrator_config.host_for("dmxapi") == "https://mine.example"
    assert orchestrator_config.host_for("chatanywhere") == "https://api.chatanywhere.tech"
    assert orchestrator_config.host_for("openai") is None


def test_save_and_reload(tmp_path):
    path = tmp_path / "config.yaml"
    config = Config(
        demo_mode=True,
        batch_size=2,
        provider_credentials={"openai": ProviderCredential(api_key="sk-" + "c" * 30)},
        role_configs={"孙悟空": RoleConfig(name="孙悟空", model_name="gpt-4o", max_tokens=500)},
    )

    save_config(config, path)
    reloaded = load_config(path, environ={})

    assert reloaded.demo_mode is True
    assert reloaded.batch_size == 2
    assert reloaded.provider_credentials["openai"].api_key == "sk-" + "c" * 30
    assert reloaded.role_configs["孙悟空"].model_name == "gpt-4o"
    assert reloaded.role_configs["孙悟空"].max_tokens == 500


def test_sample_config_is_loadable(tmp_path):
    path = tmp_path / "config.yaml"
    create_sample_config(path)

    config = load_config(path, environ={})

    assert config.demo_mode is False
    assert config.role_configs["李白"].provider == "chatanywhere"
    assert "chatanywhere" in config.provider_credentials


def test_configured_providers():
    config = Config(provider_credentials={
        "openai": ProviderCredential(api_key="sk-x"),
        "dmxapi": ProviderCredential(host="https://dmx.example"),
    })
    assert config.get_configured_providers() == ["openai"]
