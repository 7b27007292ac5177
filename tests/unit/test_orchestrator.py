"""Unit tests for the PromotionOrchestrator."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from modelship.errors import (
    ConfigurationError,
    DescriptorNotFoundError,
    MissingCredentialsError,
    PushConflictError,
    ReviewRequestCreationError,
    TransportError,
    UnknownStrategyError,
)
from modelship.orchestrator import PromotionOrchestrator
from modelship.schemas.promotion import (
    CommitMessage,
    PromoterConfig,
    PromotionOutcome,
    RunStatus,
)
from modelship.state_store import GitStateStore
from modelship.strategies import DirectPromotionStrategy

SOURCE_SHA = "3f2a9c1d4e5f60718293a4b5c6d7e8f901234567"


@pytest.fixture
def orchestrator(promoter_config: PromoterConfig, fake_gateway, token_factory):
    return PromotionOrchestrator(
        promoter_config,
        review_gateway=fake_gateway,
        token_factory=token_factory,
    )


class TestConstruction:
    """Configuration errors surface before any network call or mutation."""

    def test_unknown_strategy_before_any_network_call(
        self, promoter_config: PromoterConfig, remote_repo
    ) -> None:
        config = promoter_config.model_copy(
            update={
                "environments": [
                    promoter_config.environments[0].model_copy(update={"strategy": "canary"})
                ]
            }
        )
        store = MagicMock(spec=GitStateStore)
        gateway = MagicMock()
        commits_before = remote_repo.commit_count()

        with pytest.raises(UnknownStrategyError) as exc_info:
            PromotionOrchestrator(config, store=store, review_gateway=gateway)

        assert exc_info.value.strategy == "canary"
        assert exc_info.value.exit_code == 2
        assert store.mock_calls == []
        assert gateway.mock_calls == []
        assert remote_repo.commit_count() == commits_before

    def test_missing_credentials(self, promoter_config: PromoterConfig) -> None:
        config = promoter_config.model_copy(update={"credentials": None})

        with pytest.raises(MissingCredentialsError, match="MODELSHIP_GIT_TOKEN"):
            PromotionOrchestrator(config)

    def test_no_environments(self, credentials) -> None:
        config = PromoterConfig(
            state_store_url="https://github.com/acme/ops.git",
            credentials=credentials,
        )

        with pytest.raises(ConfigurationError, match="no environments"):
            PromotionOrchestrator(config)

    def test_builds_github_gateway_from_config(self, promoter_config: PromoterConfig) -> None:
        with patch("modelship.orchestrator.GitHubReviewGateway") as gateway_cls:
            PromotionOrchestrator(promoter_config)

        gateway_cls.assert_called_once_with(
            api_url="https://api.github.com",
            repository="acme/model-gitops",
            credentials=promoter_config.credentials,
        )

    def test_direct_only_needs_no_gateway(self, staging_only_config: PromoterConfig) -> None:
        with patch("modelship.orchestrator.GitHubReviewGateway") as gateway_cls:
            orchestrator = PromotionOrchestrator(staging_only_config)

        gateway_cls.assert_not_called()
        assert sorted(orchestrator.strategies) == ["direct"]

    def test_custom_strategy_kind(self, promoter_config: PromoterConfig) -> None:
        config = promoter_config.model_copy(
            update={
                "environments": [
                    promoter_config.environments[0].model_copy(update={"strategy": "canary"})
                ]
            }
        )
        custom = MagicMock(spec=DirectPromotionStrategy)

        orchestrator = PromotionOrchestrator(config, strategies={"canary": custom})

        assert orchestrator.strategies["canary"] is custom


class TestPromote:
    """End-to-end promotion runs against a local remote."""

    def test_staging_committed_production_requested(
        self, orchestrator: PromotionOrchestrator, remote_repo, fake_gateway, descriptor: Path
    ) -> None:
        result = orchestrator.promote(
            descriptor, SOURCE_SHA, message="retrained", author="jane", email="jane@example.com"
        )

        assert result.status == RunStatus.PROMOTED
        staging, production = result.records
        assert staging.outcome == PromotionOutcome.COMMITTED
        assert production.outcome == PromotionOutcome.REVIEW_REQUESTED
        assert production.branch == "promote/production/token-1"
        assert production.request_id == "1"
        assert fake_gateway.assigned == [("1", "release-manager")]

        assert remote_repo.head() == staging.commit_sha
        assert remote_repo.read_tree("staging") is not None
        assert remote_repo.read_tree("production") is None
        message = CommitMessage.parse(remote_repo.message())
        assert message == CommitMessage(
            action="Promote model 3f2a9c1d4e5f to staging",
            message="retrained",
            author="jane",
            email="jane@example.com",
        )

    def test_review_branch_builds_on_staging_commit(
        self, orchestrator: PromotionOrchestrator, remote_repo, descriptor: Path
    ) -> None:
        result = orchestrator.promote(descriptor, SOURCE_SHA)

        staging, production = result.records
        branch = production.branch
        assert branch is not None
        assert remote_repo.read_tree("staging", branch) == remote_repo.read_tree("staging")
        assert remote_repo.read_tree("production", branch) == remote_repo.read_tree("staging")

    def test_second_run_is_noop_for_direct_environment(
        self, staging_only_config: PromoterConfig, remote_repo, descriptor: Path
    ) -> None:
        """Promoting the same descriptor twice adds no commits the second time."""
        orchestrator = PromotionOrchestrator(staging_only_config)
        first = orchestrator.promote(descriptor, SOURCE_SHA)
        commits_after_first = remote_repo.commit_count()

        second = orchestrator.promote(descriptor, SOURCE_SHA)

        assert first.status == RunStatus.PROMOTED
        assert second.status == RunStatus.NO_OP
        assert second.records[0].changed is False
        assert second.records[0].commit_sha is None
        assert remote_repo.commit_count() == commits_after_first

    def test_noop_staging_still_promotes_production(
        self, orchestrator: PromotionOrchestrator, remote_repo, fake_gateway, descriptor: Path
    ) -> None:
        orchestrator.promote(descriptor, SOURCE_SHA)

        result = orchestrator.promote(descriptor, SOURCE_SHA)

        staging, production = result.records
        assert staging.outcome == PromotionOutcome.NO_OP
        assert production.outcome == PromotionOutcome.REVIEW_REQUESTED
        assert production.branch == "promote/production/token-2"
        assert len(fake_gateway.created) == 2

    def test_merged_production_is_noop(
        self, orchestrator: PromotionOrchestrator, remote_repo, fake_gateway, descriptor: Path
    ) -> None:
        first = orchestrator.promote(descriptor, SOURCE_SHA)
        production_files = remote_repo.read_tree("production", first.records[1].branch)
        assert production_files is not None
        remote_repo.push_change(
            {f"production/{path}": content for path, content in production_files.items()},
            "Merge pull request #1",
        )

        result = orchestrator.promote(descriptor, SOURCE_SHA)

        assert result.status == RunStatus.NO_OP
        assert len(fake_gateway.created) == 1

    def test_descriptor_files_matched_by_gitignore(
        self, staging_only_config: PromoterConfig, remote_repo, make_descriptor
    ) -> None:
        """Ignore rules in the state store neither break nor repeat a promotion."""
        remote_repo.push_change({".gitignore": "*.tgz\n"}, "Ignore chart archives")
        files = {"deploy.yaml": "kind: Deployment\n", "charts/model.tgz": "chart-archive\n"}
        descriptor = make_descriptor(files)
        orchestrator = PromotionOrchestrator(staging_only_config)

        first = orchestrator.promote(descriptor, SOURCE_SHA)
        second = orchestrator.promote(descriptor, SOURCE_SHA)

        assert first.status == RunStatus.PROMOTED
        assert second.status == RunStatus.NO_OP
        assert remote_repo.read_tree("staging") == files

    def test_conflict_stops_before_production(
        self, orchestrator: PromotionOrchestrator, remote_repo, fake_gateway, descriptor: Path
    ) -> None:
        def advance_remote(*args, **kwargs):
            remote_repo.push_change({"staging/concurrent.yaml": "x\n"})
            return original(*args, **kwargs)

        original = orchestrator.store.push
        with patch.object(orchestrator.store, "push", side_effect=advance_remote):
            with pytest.raises(PushConflictError):
                orchestrator.promote(descriptor, SOURCE_SHA)

        assert fake_gateway.created == []
        assert remote_repo.branches() == ["master"]

    def test_partial_failure_propagates(
        self, orchestrator: PromotionOrchestrator, remote_repo, fake_gateway, descriptor: Path
    ) -> None:
        fake_gateway.fail_create = TransportError("create_request", "connection reset")

        with pytest.raises(ReviewRequestCreationError) as exc_info:
            orchestrator.promote(descriptor, SOURCE_SHA)

        assert exc_info.value.branch == "promote/production/token-1"
        assert remote_repo.read_tree("staging") is not None
        (staging,) = exc_info.value.completed
        assert staging.environment == "staging"
        assert staging.outcome == PromotionOutcome.COMMITTED
        assert staging.commit_sha == remote_repo.head()

    def test_missing_descriptor_fails_before_sync(
        self, promoter_config: PromoterConfig, fake_gateway, tmp_path: Path
    ) -> None:
        store = MagicMock(spec=GitStateStore)
        orchestrator = PromotionOrchestrator(
            promoter_config, store=store, review_gateway=fake_gateway
        )

        with pytest.raises(DescriptorNotFoundError):
            orchestrator.promote(tmp_path / "missing", SOURCE_SHA)

        store.sync.assert_not_called()


class TestDetect:
    """Dry detection across environments."""

    def test_reports_every_environment_without_writing(
        self, orchestrator: PromotionOrchestrator, remote_repo, descriptor: Path
    ) -> None:
        commits_before = remote_repo.commit_count()

        detections = orchestrator.detect(descriptor)

        assert [d.environment for d in detections] == ["staging", "production"]
        assert all(d.changed and d.first_promotion for d in detections)
        assert remote_repo.commit_count() == commits_before
        assert remote_repo.branches() == ["master"]


class TestTemporaryCheckout:
    """Checkout directory handling when no workdir is configured."""

    def test_close_removes_temporary_checkout(
        self, staging_only_config: PromoterConfig, descriptor: Path
    ) -> None:
        config = staging_only_config.model_copy(update={"workdir": None})

        with PromotionOrchestrator(config) as orchestrator:
            orchestrator.promote(descriptor, SOURCE_SHA)
            checkout = orchestrator.store.workdir
            assert (checkout / "staging").is_dir()

        assert not checkout.exists()
        assert not checkout.parent.exists()

    def test_configured_workdir_is_kept(
        self, staging_only_config: PromoterConfig, descriptor: Path
    ) -> None:
        with PromotionOrchestrator(staging_only_config) as orchestrator:
            orchestrator.promote(descriptor, SOURCE_SHA)

        assert staging_only_config.workdir is not None
        assert (Path(staging_only_config.workdir) / "staging").is_dir()
