from __future__ import annotations
from typing import Optional

import numpy as np


def _mask_head(logits: np.ndarray, mask: Optional[np.ndarray]) -> np.ndarray:
    if mask is None:
        return logits
    out = logits.astype(np.float64, copy=True)
    out[~mask] = -np.inf
    return out


def apply_masks(
    logits: dict[str, np.ndarray], masks: dict[str, np.ndarray]
) -> dict[str, np.ndarray]:
    """
    Per head, push the logits of illegal choices to -inf. Heads without a mask
    pass through untouched.
    """
    return {head: _mask_head(lg, masks.get(head)) for head, lg in logits.items()}


def masked_probs(logits: np.ndarray) -> np.ndarray:
    """Softmax over the finite entries; raises if every entry is masked."""
    finite = np.isfinite(logits)
    if not finite.any():
        raise ValueError("no legal choice left after masking")
    p = np.zeros(logits.shape, dtype=np.float64)
    z = logits[finite] - logits[finite].max()
    p[finite] = np.exp(z)
    return p / p.sum()
