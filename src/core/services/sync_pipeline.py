"""Shadow synchronization orchestration.

This module holds the whole run behind the CLI: startup guard, trust anchor,
ordered failover across shadowd hosts and the final file reconciliation. The
CLI only parses flags and renders the outcome, which keeps the pipeline
reusable from other entry points (doctor, tests) and keeps printing out of the
core logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from adapters.distribution_client import DistributionClient
from adapters.shadow_file import MergeResult, merge
from adapters.trust_anchor import TrustAnchor, ensure_no_private_key, load_trust_anchor
from core.config import AppSettings
from core.domain.errors import AllServersFailedError, TransportError
from core.domain.models import CredentialSet
from core.interfaces.repository import ShadowRepository

logger = logging.getLogger(__name__)


@dataclass
class SyncRequest:
    """Parameters that control one synchronization run."""

    addresses: Sequence[str]
    identities: Sequence[str]
    shadow_file: Path
    certificate: Path
    atomic: bool = False
    dry_run: bool = False


@dataclass
class PipelineHooks:
    """Optional callbacks for UI layers (warnings, per-host progress)."""

    warning: Callable[[str], None] | None = None
    attempt: Callable[[str], None] | None = None


@dataclass
class SyncResult:
    """Output of a pipeline invocation."""

    credentials: CredentialSet
    merge: MergeResult
    failures: list[TransportError] = field(default_factory=list)


def resolve(
    identities: Sequence[str],
    addresses: Sequence[str],
    trust_anchor: TrustAnchor,
    *,
    client: ShadowRepository | None = None,
    hooks: PipelineHooks | None = None,
    failures: list[TransportError] | None = None,
) -> CredentialSet:
    """Return the credential set from the first host that answers.

    Hosts are tried once each, strictly in the given order; later hosts are
    never contacted after a success. Every failure is logged and collected,
    and if none succeeds `AllServersFailedError` carries all of them.
    """

    client = client or DistributionClient()
    hooks = hooks or PipelineHooks()
    failures = failures if failures is not None else []

    for address in addresses:
        if hooks.attempt:
            hooks.attempt(address)
        try:
            credentials = client.fetch(address, identities, trust_anchor)
        except TransportError as exc:
            failures.append(exc)
            message = f"shadowd host '{address}' returned error: {exc.kind.value}: {exc.message}"
            logger.warning(message)
            if hooks.warning:
                hooks.warning(message)
            continue
        logger.info("%s returned %d record(s)", address, len(credentials))
        return credentials

    raise AllServersFailedError(failures)


def run_sync(
    request: SyncRequest,
    *,
    settings: AppSettings | None = None,
    client: ShadowRepository | None = None,
    hooks: PipelineHooks | None = None,
) -> SyncResult:
    """Fetch the requested entries and reconcile them into the shadow file.

    Fatal errors (certificate, key guard, all hosts failing, file I/O)
    propagate unchanged; the file is not touched unless a host succeeded.
    """

    ensure_no_private_key(request.certificate)
    trust_anchor = load_trust_anchor(request.certificate)
    logger.debug("pinned %s (sha256 %s)", trust_anchor.subject, trust_anchor.fingerprint)

    client = client or DistributionClient(settings)
    failures: list[TransportError] = []
    credentials = resolve(
        request.identities,
        request.addresses,
        trust_anchor,
        client=client,
        hooks=hooks,
        failures=failures,
    )

    result = merge(
        request.shadow_file,
        credentials,
        atomic=request.atomic,
        dry_run=request.dry_run,
    )
    return SyncResult(credentials=credentials, merge=result, failures=failures)
