"""
Brief: Tests for ubwrap.config.config_parser loading and resolver building.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

import ubwrap.config.config_parser as cp
from conftest import FakeEngine
from ubwrap.config.config_parser import (
    AppConfig,
    ResolverSettings,
    apply_settings,
    build_resolver,
    load_config,
    parse_config,
)
from ubwrap.errors import EngineOperationError, EngineOptionError
from ubwrap.resolver import Resolver

ANCHOR = ". IN DS 20326 8 2 E06D44B80B8F1D39A95C0B0D7C65D08458E880409BBC683457104237C7F8EC8D"


def test_defaults_for_empty_config():
    """
    Brief: None and {} both yield the default configuration.

    Inputs:
      - None

    Outputs:
      - None: Asserts default engine and logging level
    """
    for data in (None, {}):
        cfg = parse_config(data)
        assert cfg.resolver.engine == "forwarder"
        assert cfg.logging.level == "info"
        assert cfg.resolver.options == {}


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "ubwrap.yaml"
    path.write_text(
        "logging:\n"
        "  level: debug\n"
        "resolver:\n"
        "  options:\n"
        "    edns-buffer-size: 4096\n"
        "    do-ip6: false\n"
        "    module-config: validator iterator\n"
        "  forward: [9.9.9.9, 149.112.112.112]\n"
        "  stubs:\n"
        "    - {name: corp.example., addrs: [192.0.2.10], prime: true}\n"
        "  trust_anchor_files:\n"
        "    - /var/lib/unbound/root.key\n"
        "    - {path: /etc/unbound/auto.key, auto_retrieval: true}\n"
        "  zones:\n"
        "    - {name: home.arpa.}\n"
        "  data:\n"
        "    - router.home.arpa. IN A 192.168.1.1\n"
    )
    cfg = load_config(str(path))
    assert isinstance(cfg, AppConfig)
    opts = cfg.resolver.options
    assert opts["edns-buffer-size"] == 4096
    assert opts["do-ip6"] is False
    assert opts["module-config"] == "validator iterator"
    assert cfg.resolver.stubs[0].prime is True
    assert cfg.resolver.zones[0].type == "static"
    assert cfg.resolver.trust_anchor_files[1].auto_retrieval is True


@pytest.mark.parametrize(
    "data",
    [
        {"resolver": {"unknown_key": 1}},
        {"resolver": {"stubs": [{"name": "x.", "addrs": []}]}},
        {"logging": {"level": "debug", "colour": True}},
        ["not", "a", "mapping"],
    ],
)
def test_invalid_config_raises_value_error(data):
    with pytest.raises(ValueError):
        parse_config(data)


def test_invalid_yaml_and_missing_file(tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("resolver: [unclosed\n")
    with pytest.raises(ValueError) as excinfo:
        load_config(str(bad))
    assert "invalid YAML" in str(excinfo.value)
    with pytest.raises(OSError):
        load_config(str(tmp_path / "missing.yaml"))


def test_apply_settings_order(tmp_path):
    engine = FakeEngine()
    settings = ResolverSettings(
        config_file="/etc/unbound/unbound.conf",
        options={"edns-buffer-size": 4096, "do-ip6": False},
        try_options={"no-such-option": 1, "verbosity": 2},
        forward=["192.0.2.53"],
        stubs=[{"name": "corp.example.", "addrs": ["192.0.2.10", "192.0.2.11"]}],
        resolv_conf=True,
        hosts="/etc/hosts.local",
        trust_anchors=[ANCHOR],
        trust_anchor_files=["/a.key", {"path": "/b.key", "auto_retrieval": True}],
        trusted_keys_files=["/keys.conf"],
        zones=[{"name": "home.arpa.", "type": "static"}],
        data=["router.home.arpa. A 192.168.1.1"],
    )
    r = Resolver(engine)
    assert apply_settings(r, settings) is r
    calls = [c for c in engine.contexts[0].calls if c[0] != "get_option"]
    assert calls == [
        ("set_config", "/etc/unbound/unbound.conf"),
        ("set_option", "edns-buffer-size:", "4096"),
        ("set_option", "do-ip6:", "no"),
        ("set_option", "verbosity:", "2"),
        ("set_forward", "192.0.2.53"),
        ("set_stub", "corp.example.", "192.0.2.10", False),
        ("set_stub", "corp.example.", "192.0.2.11", False),
        ("set_resolv_conf", None),
        ("set_hosts", "/etc/hosts.local"),
        ("add_trust_anchor", ANCHOR),
        ("add_trust_anchor_file", "/a.key"),
        ("add_trust_anchor_autr", "/b.key"),
        ("add_trusted_keys", "/keys.conf"),
        ("add_zone", "home.arpa.", "static"),
        ("add_data", "router.home.arpa. A 192.168.1.1"),
    ]
    r.close()


def test_build_resolver_with_forwarder_engine():
    settings = ResolverSettings(
        options={"edns-buffer-size": 4096},
        forward=["192.0.2.53"],
        zones=[{"name": "home.arpa."}],
        data=["router.home.arpa. A 192.168.1.1"],
    )
    r = build_resolver(settings)
    try:
        assert r.engine.name == "forwarder"
        assert r.get_option("edns-buffer-size") == 4096
        assert r.finalized is True
    finally:
        r.close()


def test_build_resolver_closes_on_failure(monkeypatch):
    engine = FakeEngine()
    monkeypatch.setattr(cp, "Resolver", lambda ident: Resolver(engine))
    with pytest.raises(EngineOptionError):
        build_resolver(ResolverSettings(options={"no-such-option": 1}))
    assert engine.contexts[0].closed is True


def test_build_resolver_engine_override():
    settings = ResolverSettings(forward=["not-an-address"])
    with pytest.raises(EngineOperationError):
        build_resolver(settings, engine="forward")
