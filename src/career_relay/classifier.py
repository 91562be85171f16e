# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""Classification of raw file-field values into reference kinds."""

import re
from collections.abc import Iterable

from career_relay.config import DEFAULT_BROKEN_MARKERS, RelayConfig
from career_relay.models.classification import ReferenceClassification, ReferenceKind

EPHEMERAL_PATTERN = re.compile(r"[A-Za-z0-9_-]{10,}")


class ReferenceClassifier:
    """Decides whether a field value is empty, ephemeral, broken, durable or unknown.

    Classification is a pure function of the value: no I/O, no logging, and
    every check is a bounded substring/prefix scan or a single regex match.
    """

    def __init__(
        self,
        durable_base_url: str,
        durable_path_prefixes: Iterable[str] = (),
        broken_markers: Iterable[str] = DEFAULT_BROKEN_MARKERS,
    ):
        """Initializes the ReferenceClassifier.

        Args:
            durable_base_url: Public base URL of the durable store.
            durable_path_prefixes: Local path prefixes that also denote durable files.
            broken_markers: Substrings that mark a value as a dangling reference.
        """
        base = durable_base_url.rstrip("/")
        self.durable_prefixes: tuple[str, ...] = tuple(
            p for p in (f"{base}/", *durable_path_prefixes) if p and p != "/"
        )
        self.broken_markers: tuple[str, ...] = tuple(m for m in broken_markers if m)

    @classmethod
    def from_config(cls, config: RelayConfig) -> "ReferenceClassifier":
        return cls(
            durable_base_url=config.public_base_url,
            durable_path_prefixes=config.durable_path_prefixes,
            broken_markers=config.broken_markers,
        )

    def classify(self, raw_value: object) -> ReferenceClassification:
        """Classify one raw field value.

        Args:
            raw_value: The stored value. Non-strings other than None are stringified.

        Returns:
            ReferenceClassification: The kind, the trimmed value and any matched marker.
        """
        if raw_value is None:
            return ReferenceClassification(kind=ReferenceKind.EMPTY, value="")

        value = (raw_value if isinstance(raw_value, str) else str(raw_value)).strip()
        if not value:
            return ReferenceClassification(kind=ReferenceKind.EMPTY, value="")

        for marker in self.broken_markers:
            if marker in value:
                return ReferenceClassification(kind=ReferenceKind.BROKEN, value=value, marker=marker)

        if value.startswith(self.durable_prefixes):
            return ReferenceClassification(kind=ReferenceKind.DURABLE, value=value)

        if EPHEMERAL_PATTERN.fullmatch(value):
            return ReferenceClassification(kind=ReferenceKind.EPHEMERAL, value=value)

        return ReferenceClassification(kind=ReferenceKind.UNKNOWN, value=value)

    def is_ephemeral_reference(self, value: object) -> bool:
        """True exactly when ``classify`` would return EPHEMERAL."""
        return self.classify(value).kind is ReferenceKind.EPHEMERAL


_default_classifier: ReferenceClassifier | None = None


def default_classifier() -> ReferenceClassifier:
    """Classifier built from the environment's RelayConfig, created on first use."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = ReferenceClassifier.from_config(RelayConfig())
    return _default_classifier


def classify(raw_value: object) -> ReferenceClassification:
    return default_classifier().classify(raw_value)


def is_ephemeral_reference(value: object) -> bool:
    return default_classifier().is_ephemeral_reference(value)
