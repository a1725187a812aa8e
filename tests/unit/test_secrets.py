"""Tests for secret wrapping and log redaction."""

from __future__ import annotations

import json
from types import MappingProxyType

import structlog
from structlog.testing import LogCapture

from stackgraph.observability.logging import mask_secrets
from stackgraph.secrets import MASK, Secret, mask


class TestSecret:
    def test_never_rendered(self) -> None:
        secret = Secret("hunter2")
        assert repr(secret) == "Secret([SECRET])"
        assert str(secret) == MASK
        assert f"{secret}" == MASK
        assert f"{secret:>20}" == MASK
        assert "hunter2" not in json.dumps({"v": secret}, default=str)

    def test_reveal(self) -> None:
        assert Secret("hunter2").reveal() == "hunter2"

    def test_equality_and_hash(self) -> None:
        assert Secret("a") == Secret("a")
        assert Secret("a") != Secret("b")
        assert Secret("a") != "a"
        assert len({Secret("a"), Secret("a")}) == 1

    def test_truthiness(self) -> None:
        assert Secret("a")
        assert not Secret("")

    def test_mask_helper(self) -> None:
        assert mask(Secret("x")) == MASK
        assert mask("plain") == "plain"


class TestMaskSecretsProcessor:
    def test_masks_secret_values(self) -> None:
        event = mask_secrets(None, "info", {"event": "e", "value": Secret("x")})
        assert event["value"] == MASK

    def test_masks_denylisted_keys(self) -> None:
        event = mask_secrets(None, "info", {"event": "e", "kubeconfig": "raw", "Token": "abc", "node": "n"})
        assert event["kubeconfig"] == MASK
        assert event["Token"] == MASK
        assert event["node"] == "n"

    def test_masks_nested_values(self) -> None:
        event = mask_secrets(
            None,
            "info",
            {"event": "e", "payload": {"password": "p", "items": [Secret("s"), "ok"], "name": "n"}},
        )
        assert event["payload"] == {"password": MASK, "items": [MASK, "ok"], "name": "n"}

    def test_masks_read_only_mappings(self) -> None:
        attributes = MappingProxyType({"properties": {"kubeconfig": "raw", "fqdn": "aks.example"}})
        event = mask_secrets(None, "info", {"event": "e", "attributes": attributes})
        assert event["attributes"] == {"properties": {"kubeconfig": MASK, "fqdn": "aks.example"}}

    def test_in_processor_chain(self) -> None:
        capture = LogCapture()
        structlog.configure(processors=[mask_secrets, capture])
        try:
            structlog.get_logger(component="test").info("credentials_fetched", document=Secret("doc"), token="t")
        finally:
            structlog.reset_defaults()
        [entry] = capture.entries
        assert entry["document"] == MASK
        assert entry["token"] == MASK
        assert entry["event"] == "credentials_fetched"
