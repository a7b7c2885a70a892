"""Unit tests for failover resolution and the full sync run."""

import logging
from pathlib import Path
from typing import Sequence

import pytest

from core.domain.errors import (
    AllServersFailedError,
    CertificateError,
    PrivateKeyExposedError,
    TransportError,
    TransportErrorKind,
)
from core.domain.models import CredentialRecord, CredentialSet
from core.interfaces.repository import ShadowRepository
from core.services.sync_pipeline import PipelineHooks, SyncRequest, resolve, run_sync


class FakeRepository:
    """Scripted ShadowRepository: one outcome per address, calls recorded."""

    def __init__(self, outcomes: dict[str, CredentialSet | TransportError]) -> None:
        self.outcomes = outcomes
        self.calls: list[tuple[str, list[str]]] = []

    def fetch(self, address: str, identities: Sequence[str], trust_anchor) -> CredentialSet:
        self.calls.append((address, list(identities)))
        outcome = self.outcomes[address]
        if isinstance(outcome, TransportError):
            raise outcome
        return outcome

    @property
    def contacted(self) -> list[str]:
        return [address for address, _ in self.calls]


def failure(address: str, kind: TransportErrorKind = TransportErrorKind.NETWORK) -> TransportError:
    return TransportError(kind, address, "connection refused")


def credentials(address: str, *lines: str) -> CredentialSet:
    return CredentialSet(records=[CredentialRecord.from_line(line) for line in lines], source=address)


class TestResolve:
    """Tests for resolve (ordered failover)."""

    def test_fake_repository_satisfies_protocol(self) -> None:
        assert isinstance(FakeRepository({}), ShadowRepository)

    def test_first_success_short_circuits(self, trust_anchor) -> None:
        """A fails, B succeeds, C is never contacted."""
        repo = FakeRepository(
            {
                "a": failure("a"),
                "b": credentials("b", "root:y:3:4"),
                "c": credentials("c", "root:z"),
            }
        )

        result = resolve(["root"], ["a", "b", "c"], trust_anchor, client=repo)

        assert repo.contacted == ["a", "b"]
        assert result.source == "b"
        assert result.records[0].to_line() == "root:y:3:4"

    def test_first_host_wins_when_healthy(self, trust_anchor) -> None:
        repo = FakeRepository({"a": credentials("a", "root:x"), "b": credentials("b", "root:y")})

        result = resolve(["root"], ["a", "b"], trust_anchor, client=repo)

        assert repo.contacted == ["a"]
        assert result.source == "a"

    def test_empty_result_is_a_success(self, trust_anchor) -> None:
        """A host with no data stops the loop like any other success."""
        repo = FakeRepository({"a": CredentialSet(source="a"), "b": credentials("b", "root:y")})

        result = resolve(["root"], ["a", "b"], trust_anchor, client=repo)

        assert len(result) == 0
        assert repo.contacted == ["a"]

    def test_all_failures_are_aggregated(self, trust_anchor) -> None:
        repo = FakeRepository(
            {
                "a": failure("a"),
                "b": failure("b", TransportErrorKind.UNTRUSTED_PEER),
            }
        )

        with pytest.raises(AllServersFailedError) as excinfo:
            resolve(["root"], ["a", "b"], trust_anchor, client=repo)

        error = excinfo.value
        assert error.addresses == ["a", "b"]
        assert [f.kind for f in error.failures] == [
            TransportErrorKind.NETWORK,
            TransportErrorKind.UNTRUSTED_PEER,
        ]
        assert "'a'" in str(error) and "'b'" in str(error)

    def test_no_addresses_fails(self, trust_anchor) -> None:
        """An empty host list is a failure, not an empty result."""
        with pytest.raises(AllServersFailedError) as excinfo:
            resolve(["root"], [], trust_anchor, client=FakeRepository({}))

        assert excinfo.value.failures == []

    def test_failures_are_logged_and_reported(self, trust_anchor, caplog) -> None:
        warnings: list[str] = []
        attempts: list[str] = []
        hooks = PipelineHooks(warning=warnings.append, attempt=attempts.append)
        repo = FakeRepository({"a": failure("a"), "b": credentials("b")})

        with caplog.at_level(logging.WARNING, logger="core.services.sync_pipeline"):
            resolve(["root"], ["a", "b"], trust_anchor, client=repo, hooks=hooks)

        assert attempts == ["a", "b"]
        assert len(warnings) == 1
        assert "shadowd host 'a' returned error" in warnings[0]
        assert any("'a'" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    def test_identities_are_forwarded(self, trust_anchor) -> None:
        repo = FakeRepository({"a": credentials("a")})

        resolve(["root", "svc"], ["a"], trust_anchor, client=repo)

        assert repo.calls == [("a", ["root", "svc"])]


class TestRunSync:
    """Tests for run_sync (guard, anchor, failover, merge)."""

    def _request(self, cert_path: Path, shadow_path: Path, addresses: list[str], **kwargs) -> SyncRequest:
        return SyncRequest(
            addresses=addresses,
            identities=["root"],
            shadow_file=shadow_path,
            certificate=cert_path,
            **kwargs,
        )

    def test_success_merges_file(self, cert_path: Path, shadow_path: Path) -> None:
        repo = FakeRepository({"a": failure("a"), "b": credentials("b", "root:y:3:4")})

        result = run_sync(self._request(cert_path, shadow_path, ["a", "b"]), client=repo)

        assert result.merge.replaced == ["root"]
        assert [f.address for f in result.failures] == ["a"]
        assert shadow_path.read_text().startswith("root:y:3:4\n")

    def test_all_failures_leave_file_untouched(self, cert_path: Path, shadow_path: Path) -> None:
        before = shadow_path.read_bytes()
        repo = FakeRepository({"a": failure("a"), "b": failure("b")})

        with pytest.raises(AllServersFailedError):
            run_sync(self._request(cert_path, shadow_path, ["a", "b"]), client=repo)

        assert shadow_path.read_bytes() == before

    def test_key_next_to_certificate_aborts_before_network(
        self, tmp_path: Path, pinned_pair, shadow_path: Path
    ) -> None:
        cert_file, _ = pinned_pair.write(tmp_path / "leaky")
        repo = FakeRepository({"a": credentials("a", "root:y")})

        with pytest.raises(PrivateKeyExposedError):
            run_sync(self._request(cert_file, shadow_path, ["a"]), client=repo)

        assert repo.calls == []

    def test_bad_certificate_aborts_before_network(self, tmp_path: Path, shadow_path: Path) -> None:
        repo = FakeRepository({"a": credentials("a", "root:y")})

        with pytest.raises(CertificateError):
            run_sync(self._request(tmp_path / "nope.pem", shadow_path, ["a"]), client=repo)

        assert repo.calls == []

    def test_dry_run_does_not_write(self, cert_path: Path, shadow_path: Path) -> None:
        before = shadow_path.read_bytes()
        repo = FakeRepository({"a": credentials("a", "root:y")})

        result = run_sync(self._request(cert_path, shadow_path, ["a"], dry_run=True), client=repo)

        assert shadow_path.read_bytes() == before
        assert result.merge.replaced == ["root"]
