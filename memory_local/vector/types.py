"""
Vector record and search result types.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np


@dataclass
class VectorRecord:
    """Represents a vector entry keyed by memory id."""

    id: str
    """Memory id; the join key with the structured index"""

    vector: Optional[np.ndarray]
    """The embedding of the memory text"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Additional metadata stored with the vector (the memory text)"""


@dataclass
class QueryResult:
    """Represents a nearest-neighbor match from a vector store."""

    id: str
    """Identifier for the matching record"""

    distance: float
    """Cosine distance to the query (0 = identical direction)"""

    metadata: Dict[str, object] = field(default_factory=dict)
    """Metadata associated with the matched record"""

    @property
    def score(self) -> float:
        """Similarity score, 1 - distance."""
        return 1.0 - self.distance
