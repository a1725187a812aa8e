"""Credential exporter for managed clusters.

Waits for the cluster to reach a terminal provisioning state, fetches its
kubeconfig and wraps the decoded document as a secret. ``export()`` never
raises for provider or readiness problems: it returns a placeholder value so
the rest of a partially successful deployment stays inspectable.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import time

import structlog

from stackgraph.errors import CredentialUnavailableError, ProviderRequestError, ProvisioningTimeoutError
from stackgraph.models.resources import CredentialBundle, MaterializedOutput, ProvisioningState
from stackgraph.models.results import CredentialStatus, ExportedCredential
from stackgraph.provider.base import CREDENTIAL_SCOPES, Provider
from stackgraph.secrets import Secret

_log = structlog.get_logger(component="credentials")


def decode_kubeconfig(payload: str | bytes) -> str:
    """Decode a kubeconfig payload from its transport encoding.

    ``str`` payloads are base64 as returned by the raw ARM API; ``bytes``
    payloads were already decoded by an SDK and only need UTF-8 decoding.
    """
    if isinstance(payload, (bytes, bytearray)):
        raw = bytes(payload)
    else:
        try:
            raw = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise CredentialUnavailableError("Credential payload is not valid base64") from exc
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CredentialUnavailableError("Credential payload is not UTF-8 text") from exc


class CredentialExporter:
    """Fetches and secret-wraps cluster credentials.

    Args:
        provider:      Control-plane adapter.
        scope:         ``"user"`` or ``"admin"`` credentials.
        poll_interval: Seconds between readiness polls.
        timeout:       Upper bound on the readiness wait, in seconds.
    """

    def __init__(
        self,
        provider: Provider,
        *,
        scope: str = "user",
        poll_interval: float = 15.0,
        timeout: float = 1800.0,
    ) -> None:
        if scope not in CREDENTIAL_SCOPES:
            raise ValueError(f"Invalid credential scope: {scope}")
        self._provider = provider
        self._scope = scope
        self._poll_interval = poll_interval
        self._timeout = timeout

    async def wait_until_ready(self, resource_id: str) -> ProvisioningState:
        """Poll the cluster until it reports a terminal state.

        Always polls at least once. Raises ProvisioningTimeoutError when no
        terminal state is observed within the timeout.
        """
        deadline = time.monotonic() + self._timeout
        while True:
            attributes = await self._provider.get(resource_id)
            if attributes is None:
                raise CredentialUnavailableError(f"Cluster {resource_id} does not exist")
            state = ProvisioningState.parse((attributes.get("properties") or {}).get("provisioningState"))
            _log.debug("cluster_state_polled", resource_id=resource_id, state=state.value)
            if state.is_terminal:
                return state
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ProvisioningTimeoutError(f"cluster {resource_id}", self._timeout)
            await asyncio.sleep(min(self._poll_interval, remaining))

    async def fetch(self, cluster: MaterializedOutput) -> CredentialBundle:
        """Return the decoded credential bundle for a ready cluster.

        Raises:
            CredentialUnavailableError: the cluster is not in ``Succeeded``
                state or returned no credentials.
            ProvisioningTimeoutError: readiness was not reached in time.
            ProviderRequestError: the provider rejected a request.
        """
        state = await self.wait_until_ready(cluster.resource_id)
        if state is not ProvisioningState.SUCCEEDED:
            raise CredentialUnavailableError(f"Cluster {cluster.ref} ended in state {state.value}", state=state.value)

        payloads = await self._provider.list_cluster_credentials(cluster.resource_id, self._scope)
        if not payloads:
            raise CredentialUnavailableError(f"Cluster {cluster.ref} returned no {self._scope} credentials")
        document = decode_kubeconfig(payloads[0])
        _log.info("credentials_fetched", cluster=str(cluster.ref), scope=self._scope)
        return CredentialBundle(cluster=cluster.ref, document=Secret(document))

    async def export(self, cluster: MaterializedOutput | None) -> ExportedCredential:
        """Fetch credentials, degrading to a placeholder on any failure."""
        if cluster is None:
            _log.warning("credentials_unavailable", reason="cluster_not_materialized")
            return ExportedCredential(status=CredentialStatus.NOT_READY, error="cluster was not materialized")
        try:
            bundle = await self.fetch(cluster)
        except ProvisioningTimeoutError as exc:
            _log.warning("credentials_unavailable", cluster=str(cluster.ref), reason="timeout", error=str(exc))
            return ExportedCredential(status=CredentialStatus.TIMED_OUT, error=str(exc))
        except CredentialUnavailableError as exc:
            terminal_failure = exc.state in (ProvisioningState.FAILED, ProvisioningState.CANCELED)
            status = CredentialStatus.FAILED if terminal_failure else CredentialStatus.NOT_READY
            _log.warning("credentials_unavailable", cluster=str(cluster.ref), reason=status.value, error=str(exc))
            return ExportedCredential(status=status, error=str(exc))
        except ProviderRequestError as exc:
            _log.error("credentials_failed", cluster=str(cluster.ref), error=str(exc))
            return ExportedCredential(status=CredentialStatus.FAILED, error=str(exc))
        return ExportedCredential(status=CredentialStatus.AVAILABLE, bundle=bundle)
