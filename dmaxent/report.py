"""Diagnostics of the features a fitted model actually uses."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Optional

from dmaxent.constants import TOLERANCE
from dmaxent.features import FeatureKind
from dmaxent.model import DMaxEntModel


@dataclass
class ActiveFeature:
    """A model coordinate with non-zero weight."""
    index: int
    kind: FeatureKind
    weight: float
    complexity: float
    size: Optional[int] = None   # tree size or monomial degree


@dataclass
class ModelReport:
    """Per-kind counts and complexities of the active features of a model."""
    active: list[ActiveFeature] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    complexity: dict[str, float] = field(default_factory=dict)
    average_tree_size: Optional[float] = None
    average_monomial_degree: Optional[float] = None

    @property
    def total_complexity(self) -> float:
        return sum(self.complexity.values())

    @classmethod
    def from_model(cls, model: DMaxEntModel) -> ModelReport:
        """Summarize every feature whose |weight| exceeds ``TOLERANCE``."""
        report = cls(
            counts={kind.value: 0 for kind in FeatureKind},
            complexity={kind.value: 0.0 for kind in FeatureKind},
        )
        tree_sizes = []
        monomial_degrees = []
        for index, weighted in enumerate(model):
            if abs(weighted.weight) <= TOLERANCE:
                continue
            feature = weighted.feature
            size = None
            if feature.kind is FeatureKind.TREE:
                size = feature.tree_size()
                tree_sizes.append(size)
            elif feature.kind is FeatureKind.MONOMIAL:
                size = feature.power
                monomial_degrees.append(size)
            report.active.append(
                ActiveFeature(index, feature.kind, weighted.weight, feature.complexity, size)
            )
            report.counts[feature.kind.value] += 1
            report.complexity[feature.kind.value] += feature.complexity
        if tree_sizes:
            report.average_tree_size = sum(tree_sizes) / len(tree_sizes)
        if monomial_degrees:
            report.average_monomial_degree = sum(monomial_degrees) / len(monomial_degrees)
        return report

    def format(self) -> list[str]:
        """Human-readable report lines."""
        lines = []
        for feature in self.active:
            line = (f"Feature #{feature.index} ({feature.kind.value}) weight={feature.weight:.6f} "
                    f"complexity={feature.complexity:.6f}")
            if feature.size is not None:
                line += f" size={feature.size}"
            lines.append(line)
        lines.append(f"Total number of features included: {len(self.active)}")
        for kind, count in self.counts.items():
            lines.append(f"Number of {kind} features included: {count}")
        lines.append(f"Overall complexity of the model: {self.total_complexity:.6f}")
        for kind, value in self.complexity.items():
            lines.append(f"Overall complexity of {kind} features: {value:.6f}")
        if self.average_tree_size is not None:
            lines.append(f"Average size of tree features: {self.average_tree_size:.6f}")
        if self.average_monomial_degree is not None:
            lines.append(f"Average degree of monomial features: {self.average_monomial_degree:.6f}")
        return lines

    def to_dict(self) -> dict:
        data = asdict(self)
        for feature in data["active"]:
            feature["kind"] = feature["kind"].value
        data["total_complexity"] = self.total_complexity
        return data
