"""Reconcile a declared file manifest with the files actually delivered."""

from typing import Iterable, List, Mapping, Optional

from models.schemas import ManifestEntry, ManifestValidation
from utils.logging import get_logger
from utils.path_policy import DEFAULT_PATH_POLICY, PathPolicy

logger = get_logger("manifest_validator")


class ManifestValidator:
    """Compares manifest entries against a file map.

    Only entries with status ``included`` and an action other than
    ``delete`` are expected. Extra files never make the result invalid.
    """

    def __init__(self, policy: Optional[PathPolicy] = None):
        self.policy = policy or DEFAULT_PATH_POLICY

    def expected_files(self, manifest: Iterable[ManifestEntry]) -> List[str]:
        expected = []
        for entry in manifest:
            if entry.status != "included" or entry.action == "delete":
                continue
            path = self.policy.normalize(entry.file)
            if path not in expected:
                expected.append(path)
        return expected

    def validate(
        self,
        manifest: Optional[List[ManifestEntry]],
        files: Mapping[str, str],
    ) -> ManifestValidation:
        """Build a ManifestValidation for ``files``.

        With no manifest everything received is extra and the result is
        valid.
        """
        received = [self.policy.normalize(path) for path in files]
        if not manifest:
            return ManifestValidation(received=received, extra=list(received), is_valid=True)

        expected = self.expected_files(manifest)
        received_set = set(received)
        expected_set = set(expected)
        missing = [path for path in expected if path not in received_set]
        extra = [path for path in received if path not in expected_set]

        if missing:
            logger.warning(f"Manifest validation: missing files: {', '.join(missing)}")
        if extra:
            logger.debug(f"Manifest validation: {len(extra)} file(s) not in manifest")

        return ManifestValidation(
            expected=expected,
            received=received,
            missing=missing,
            extra=extra,
            is_valid=not missing,
        )


def validate_manifest(
    manifest: Optional[List[ManifestEntry]],
    files: Mapping[str, str],
) -> ManifestValidation:
    """Validate with the default path policy."""
    return ManifestValidator().validate(manifest, files)
