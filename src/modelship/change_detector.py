"""Content-based change detection between a descriptor and the state store.

The Change Detector answers one question: would promoting this descriptor
alter what the state store records for an environment? Files are compared
by path and git blob id, never by timestamp, so re-promoting byte-identical
content is always a no-op.

Example:
    >>> detector = ChangeDetector(store)
    >>> detection = detector.detect(Path("build/chart"), staging_env, baseline)
    >>> detection.changed, detection.modified_paths
    (True, ['deployment.yaml'])
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from modelship.errors import DescriptorNotFoundError, EmptyDescriptorError
from modelship.schemas.promotion import ChangeDetection
from modelship.telemetry.tracing import create_span

if TYPE_CHECKING:
    from modelship.schemas.promotion import EnvironmentConfig
    from modelship.state_store import GitStateStore

logger = structlog.get_logger(__name__)


def blob_digest(data: bytes) -> str:
    """Compute the git blob id of ``data``.

    Examples:
        >>> blob_digest(b"")
        'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
    """
    header = b"blob %d\0" % len(data)
    return hashlib.sha1(header + data).hexdigest()  # noqa: S324


def descriptor_digests(descriptor: Path) -> dict[str, str]:
    """Map every file of a descriptor directory to its git blob id.

    Args:
        descriptor: Root directory of the deployment descriptor.

    Returns:
        POSIX relative path -> blob id.

    Raises:
        DescriptorNotFoundError: If ``descriptor`` is not a directory.
        EmptyDescriptorError: If ``descriptor`` contains no files.
    """
    if not descriptor.is_dir():
        raise DescriptorNotFoundError(str(descriptor))
    digests = {
        file.relative_to(descriptor).as_posix(): blob_digest(file.read_bytes())
        for file in sorted(descriptor.rglob("*"))
        if file.is_file()
    }
    if not digests:
        raise EmptyDescriptorError(str(descriptor))
    return digests


def diff_digests(candidate: dict[str, str], recorded: dict[str, str]) -> list[str]:
    """Return added, modified and removed paths, sorted.

    Examples:
        >>> diff_digests({"a": "1", "b": "2"}, {"b": "3", "c": "4"})
        ['a', 'b', 'c']
    """
    paths = set(candidate) | set(recorded)
    return sorted(path for path in paths if candidate.get(path) != recorded.get(path))


class ChangeDetector:
    """Compares candidate descriptors with the recorded state of environments.

    Detection is a pure query against the state store history: it never
    touches the worktree.
    """

    def __init__(self, store: GitStateStore) -> None:
        self.store = store

    def detect(
        self,
        descriptor: Path,
        environment: EnvironmentConfig,
        baseline: str,
    ) -> ChangeDetection:
        """Detect whether promoting ``descriptor`` to ``environment`` is a no-op.

        Args:
            descriptor: Candidate descriptor directory.
            environment: Target environment.
            baseline: Last known committed revision of the state store.

        Returns:
            ChangeDetection listing modified paths relative to the
            environment path. A path absent from the baseline counts as
            changed, with every candidate file listed.

        Raises:
            DescriptorNotFoundError: If the descriptor directory is missing.
        """
        with create_span(
            "modelship.promotion.detect",
            attributes={"environment": environment.name, "baseline": baseline},
        ) as span:
            candidate = descriptor_digests(descriptor)
            recorded = self.store.tree_digests(environment.path, baseline)

            if recorded is None:
                detection = ChangeDetection(
                    environment=environment.name,
                    path=environment.path,
                    baseline=baseline,
                    changed=True,
                    first_promotion=True,
                    modified_paths=sorted(candidate),
                )
            else:
                modified = diff_digests(candidate, recorded)
                detection = ChangeDetection(
                    environment=environment.name,
                    path=environment.path,
                    baseline=baseline,
                    changed=bool(modified),
                    modified_paths=modified,
                )

            span.set_attribute("changed", detection.changed)
            span.set_attribute("modified_count", len(detection.modified_paths))
            logger.info(
                "change_detection_completed",
                environment=environment.name,
                baseline=baseline,
                changed=detection.changed,
                first_promotion=detection.first_promotion,
                modified_count=len(detection.modified_paths),
            )
            return detection


__all__ = ["ChangeDetector", "blob_digest", "descriptor_digests", "diff_digests"]
