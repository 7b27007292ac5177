"""Shared pytest fixtures for modelship tests.

State store tests run against real git repositories created under
``tmp_path``: a bare repository plays the remote, seeded with one commit on
``master``. The review gateway is replaced by an in-memory fake.

NOTE: Do NOT add __init__.py to test directories - pytest uses importlib mode
which can cause namespace collisions with __init__.py files.
"""

from __future__ import annotations

import itertools
from pathlib import Path
from typing import TYPE_CHECKING

import git
import pytest
import structlog

from modelship.schemas.promotion import ChangeRequest, Credentials, PromoterConfig
from modelship.telemetry.tracing import reset_tracer

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

ACTOR = git.Actor("Test Seeder", "seeder@example.com")

DESCRIPTOR_FILES = {
    "seldon-deployment.yaml": "kind: SeldonDeployment\nmetadata:\n  name: churn\n",
    "model/settings.json": '{"implementation": "SKLEARN_SERVER"}\n',
    "model/uri.txt": "gs://models/churn/3f2a9c1\n",
}


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: end-to-end tests driving the CLI against local git remotes",
    )


@pytest.fixture(autouse=True)
def reset_observability() -> Generator[None, None, None]:
    """Restore default structlog configuration and tracer cache after each test."""
    yield
    structlog.reset_defaults()
    reset_tracer()


def _write_tree(root: Path, files: dict[str, str]) -> Path:
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return root


def _commit_all(repo: git.Repo, message: str) -> str:
    repo.git.add("--all")
    return repo.index.commit(message, author=ACTOR, committer=ACTOR).hexsha


class RemoteRepo:
    """Bare git repository standing in for the GitOps remote."""

    def __init__(self, path: Path, scratch: Path) -> None:
        self.path = path
        self._scratch = scratch
        self._clones = itertools.count(1)

    @property
    def url(self) -> str:
        return str(self.path)

    def head(self, revision: str = "master") -> str:
        return git.Repo(self.path).commit(revision).hexsha

    def commit_count(self, revision: str = "master") -> int:
        return int(git.Repo(self.path).git.rev_list("--count", revision))

    def branches(self) -> list[str]:
        return sorted(head.name for head in git.Repo(self.path).heads)

    def message(self, revision: str = "master") -> str:
        return str(git.Repo(self.path).commit(revision).message)

    def read_tree(self, path: str, revision: str = "master") -> dict[str, str] | None:
        """Read every file under ``path`` at ``revision``; None if absent."""
        tree = git.Repo(self.path).commit(revision).tree
        try:
            subtree = tree / path
        except KeyError:
            return None
        prefix = len(path) + 1
        return {
            item.path[prefix:]: item.data_stream.read().decode()
            for item in subtree.traverse()
            if item.type == "blob"
        }

    def push_change(self, files: dict[str, str], message: str = "Out-of-band change") -> str:
        """Commit ``files`` to master from an independent clone and push."""
        workdir = self._scratch / f"clone-{next(self._clones)}"
        clone = git.Repo.clone_from(self.url, workdir, branch="master")
        _write_tree(workdir, files)
        sha = _commit_all(clone, message)
        clone.git.push("origin", "master:master")
        return sha


@pytest.fixture
def remote_repo(tmp_path: Path) -> RemoteRepo:
    """Bare remote repository with one seed commit on master."""
    seed_dir = tmp_path / "seed"
    seed = git.Repo.init(seed_dir)
    _write_tree(seed_dir, {"README.md": "# model gitops\n"})
    _commit_all(seed, "Initial commit")
    seed.git.branch("-M", "master")

    remote_dir = tmp_path / "remote.git"
    remote = git.Repo.init(remote_dir, bare=True)
    remote.git.symbolic_ref("HEAD", "refs/heads/master")
    seed.create_remote("origin", str(remote_dir))
    seed.git.push("origin", "master:master")
    return RemoteRepo(remote_dir, tmp_path / "clones")


@pytest.fixture
def make_descriptor(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a descriptor directory; defaults to DESCRIPTOR_FILES."""
    counter = itertools.count(1)

    def _make(files: dict[str, str] | None = None) -> Path:
        root = tmp_path / f"descriptor-{next(counter)}"
        root.mkdir(parents=True)
        return _write_tree(root, DESCRIPTOR_FILES if files is None else files)

    return _make


@pytest.fixture
def descriptor(make_descriptor: Callable[..., Path]) -> Path:
    """Built deployment descriptor with three files."""
    return make_descriptor()


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="ci-bot", token="s3cr3t-token")


@pytest.fixture
def promoter_config(
    tmp_path: Path, remote_repo: RemoteRepo, credentials: Credentials
) -> PromoterConfig:
    """Staging (direct) and production (review-gated) over the local remote."""
    return PromoterConfig(
        state_store_url=remote_repo.url,
        staging_path="staging",
        production_path="production",
        approver_identity="release-manager",
        credentials=credentials,
        repository="acme/model-gitops",
        workdir=str(tmp_path / "checkout"),
    )


@pytest.fixture
def staging_only_config(
    tmp_path: Path, remote_repo: RemoteRepo, credentials: Credentials
) -> PromoterConfig:
    return PromoterConfig(
        state_store_url=remote_repo.url,
        staging_path="staging",
        credentials=credentials,
        workdir=str(tmp_path / "checkout"),
    )


@pytest.fixture
def token_factory() -> Callable[[], str]:
    """Deterministic correlation tokens: token-1, token-2, ..."""
    counter = itertools.count(1)
    return lambda: f"token-{next(counter)}"


class FakeReviewGateway:
    """In-memory review gateway recording every call.

    Attributes:
        created: Keyword arguments of every create_change_request call.
        assigned: (request_id, assignee) pairs.
        fail_create: Exception raised by create_change_request, if set.
        fail_assign: Exception raised by assign, if set.
    """

    def __init__(self) -> None:
        self.created: list[dict[str, str]] = []
        self.assigned: list[tuple[str, str]] = []
        self.fail_create: Exception | None = None
        self.fail_assign: Exception | None = None

    def create_change_request(
        self, *, title: str, body: str, head: str, base: str
    ) -> ChangeRequest:
        if self.fail_create is not None:
            raise self.fail_create
        self.created.append({"title": title, "body": body, "head": head, "base": base})
        number = str(len(self.created))
        return ChangeRequest(
            request_id=number,
            branch=head,
            base=base,
            title=title,
            body=body,
            url=f"https://github.com/acme/model-gitops/pull/{number}",
        )

    def assign(self, request_id: str, assignee: str) -> None:
        if self.fail_assign is not None:
            raise self.fail_assign
        self.assigned.append((request_id, assignee))


@pytest.fixture
def fake_gateway() -> FakeReviewGateway:
    return FakeReviewGateway()
