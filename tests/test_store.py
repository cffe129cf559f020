"""Tests for the provider store (providers/store.py)."""

from __future__ import annotations

import json
from pathlib import Path

from prism_switch.models import EnvValue, Provider, TokenCheckStatus
from prism_switch.providers.store import ProviderStore


def _provider(name: str, token: str = "", url: str = "https://api.example.com") -> Provider:
    env = {"ANTHROPIC_BASE_URL": EnvValue(url)}
    if token:
        env["ANTHROPIC_AUTH_TOKEN"] = EnvValue(token)
    return Provider(name=name, env_variables=env)


class TestAdd:
    def test_add_is_inactive(self, store: ProviderStore):
        stored = store.add(Provider(name="A", is_active=True))
        assert stored.is_active is False
        assert store.active_provider is None

    def test_persisted_across_instances(self, store: ProviderStore, state_dir: Path):
        store.add(_provider("A", "tok"))
        reloaded = ProviderStore(state_dir)
        assert [p.name for p in reloaded.providers] == ["A"]
        assert reloaded.providers[0].auth_token == "tok"

    def test_order_preserved(self, store: ProviderStore):
        for name in ("C", "A", "B"):
            store.add(Provider(name=name))
        assert [p.name for p in store.providers] == ["C", "A", "B"]


class TestActivate:
    def test_at_most_one_active(self, store: ProviderStore):
        a = store.add(Provider(name="A"))
        b = store.add(Provider(name="B"))
        store.activate(a)
        store.activate(b)
        assert [p.name for p in store.providers if p.is_active] == ["B"]
        assert store.saved_active_provider_id == b.id

    def test_unknown_is_noop(self, store: ProviderStore):
        a = store.add(Provider(name="A"))
        store.activate(a)
        assert store.activate(Provider(name="ghost")) is False
        assert store.active_provider == store.get(a.id)

    def test_deactivate_all(self, store: ProviderStore, state_dir: Path):
        a = store.add(Provider(name="A"))
        store.activate(a)
        store.deactivate_all()
        assert store.active_provider is None
        assert store.saved_active_provider_id == ""
        assert ProviderStore(state_dir).saved_active_provider_id == ""

    def test_saved_id_persisted(self, store: ProviderStore, state_dir: Path):
        a = store.add(Provider(name="A"))
        store.activate(a)
        assert ProviderStore(state_dir).saved_active_provider_id == a.id


class TestUpdateDelete:
    def test_update_replaces_in_place(self, store: ProviderStore):
        a = store.add(Provider(name="A"))
        store.add(Provider(name="B"))
        assert store.update(Provider(name="A2", id=a.id)) is True
        assert [p.name for p in store.providers] == ["A2", "B"]

    def test_update_keeps_activation_state(self, store: ProviderStore):
        a = store.add(Provider(name="A"))
        b = store.add(Provider(name="B"))
        store.activate(a)
        store.update(Provider(name="B", id=b.id, is_active=True))
        assert [p.name for p in store.providers if p.is_active] == ["A"]

    def test_update_missing_is_noop(self, store: ProviderStore):
        store.add(Provider(name="A"))
        assert store.update(Provider(name="ghost")) is False
        assert [p.name for p in store.providers] == ["A"]

    def test_delete_active_does_not_promote(self, store: ProviderStore):
        a = store.add(Provider(name="A"))
        store.add(Provider(name="B"))
        store.activate(a)
        assert store.delete(a) is True
        assert store.active_provider is None

    def test_delete_missing(self, store: ProviderStore):
        assert store.delete(Provider(name="ghost")) is False


class TestFind:
    def test_by_id_name_and_case(self, store: ProviderStore):
        a = store.add(Provider(name="DeepSeek"))
        assert store.find(a.id) == a
        assert store.find(a.id.lower()) == a
        assert store.find("DeepSeek") == a
        assert store.find("deepseek") == a
        assert store.find("other") is None


class TestTokenDuplicates:
    def test_empty_token_is_unique(self, store: ProviderStore):
        store.add(_provider("A"))
        assert store.check_token_duplicate("", "https://api.example.com").is_unique

    def test_same_url(self, store: ProviderStore):
        a = store.add(_provider("A", "tok"))
        result = store.check_token_duplicate("tok", "https://api.example.com")
        assert result.status is TokenCheckStatus.DUPLICATE_SAME_URL
        assert result.provider == a

    def test_different_url(self, store: ProviderStore):
        store.add(_provider("A", "tok"))
        result = store.check_token_duplicate("tok", "https://elsewhere.example.com")
        assert result.status is TokenCheckStatus.DUPLICATE_DIFFERENT_URL

    def test_excluding_self(self, store: ProviderStore):
        a = store.add(_provider("A", "tok"))
        assert store.check_token_duplicate("tok", a.base_url, excluding_id=a.id).is_unique


class TestLoading:
    def test_corrupt_file_loads_empty(self, state_dir: Path):
        state_dir.mkdir(parents=True)
        (state_dir / "providers.json").write_text("{broken", encoding="utf-8")
        assert ProviderStore(state_dir).providers == []

    def test_legacy_flat_env_migrated(self, state_dir: Path):
        state_dir.mkdir(parents=True)
        (state_dir / "providers.json").write_text(
            json.dumps(
                [
                    {
                        "id": "ABC",
                        "name": "Legacy",
                        "envVariables": {"ANTHROPIC_AUTH_TOKEN": "tok"},
                        "isActive": True,
                    }
                ]
            ),
            encoding="utf-8",
        )
        store = ProviderStore(state_dir)
        assert store.get("ABC") is not None
        assert store.active_provider is not None
        assert store.active_provider.auth_token == "tok"

    def test_several_active_keeps_saved_id(self, state_dir: Path):
        state_dir.mkdir(parents=True)
        (state_dir / "providers.json").write_text(
            json.dumps(
                [
                    {"id": "A", "name": "A", "envVariables": {}, "isActive": True},
                    {"id": "B", "name": "B", "envVariables": {}, "isActive": True},
                ]
            ),
            encoding="utf-8",
        )
        (state_dir / "active_provider_id").write_text("B", encoding="utf-8")

        store = ProviderStore(state_dir)

        assert [p.id for p in store.providers if p.is_active] == ["B"]
        assert store.active_provider is not None
        assert store.active_provider.id == "B"

    def test_several_active_without_saved_id_clears_all(self, state_dir: Path):
        state_dir.mkdir(parents=True)
        (state_dir / "providers.json").write_text(
            json.dumps(
                [
                    {"id": "A", "name": "A", "envVariables": {}, "isActive": True},
                    {"id": "B", "name": "B", "envVariables": {}, "isActive": True},
                ]
            ),
            encoding="utf-8",
        )
        assert ProviderStore(state_dir).active_provider is None
