"""
Multi-block omics container and sample alignment.

Handles checking and enforcing a shared, ordered sample axis across blocks.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from multiomics_lab.exceptions import DataAlignmentError


def validate_alignment(blocks: Mapping[str, pd.DataFrame],
                       labels: Optional[pd.Series] = None) -> pd.Index:
    """
    Check that all blocks (and labels) share one ordered sample axis.

    Parameters
    ----------
    blocks : dict
        {block_name: DataFrame} with samples as rows
    labels : pd.Series, optional
        Outcome per sample, indexed by sample id

    Returns
    -------
    pd.Index
        The common ordered sample index

    Raises
    ------
    DataAlignmentError
        On differing counts, differing ids or order, or duplicated ids
    """
    if len(blocks) == 0:
        raise DataAlignmentError("No blocks supplied")

    names = list(blocks.keys())
    reference_name = names[0]
    reference = blocks[reference_name].index

    if reference.has_duplicates:
        dups = reference[reference.duplicated()].unique().tolist()
        raise DataAlignmentError(
            f"Block '{reference_name}' has duplicated sample ids: {dups[:10]}"
        )

    n_samples = {name: blocks[name].shape[0] for name in names}
    if len(set(n_samples.values())) != 1:
        raise DataAlignmentError(
            f"All blocks must have same number of samples. Got {n_samples}"
        )

    for name in names[1:]:
        index = blocks[name].index
        if not index.equals(reference):
            if set(index) == set(reference):
                raise DataAlignmentError(
                    f"Block '{name}' has the same samples as '{reference_name}' "
                    f"in a different order"
                )
            missing = sorted(set(reference) - set(index))
            extra = sorted(set(index) - set(reference))
            raise DataAlignmentError(
                f"Block '{name}' sample ids differ from '{reference_name}': "
                f"missing {missing[:10]}, unexpected {extra[:10]}"
            )

    if labels is not None:
        if len(labels) != len(reference):
            raise DataAlignmentError(
                f"Label vector has {len(labels)} entries, blocks have {len(reference)} samples"
            )
        if isinstance(labels, pd.Series) and not labels.index.equals(reference):
            raise DataAlignmentError(
                "Label index does not match the block sample ids (count or order)"
            )

    return reference


def align_blocks(blocks: Mapping[str, pd.DataFrame],
                 labels: Optional[pd.Series] = None,
                 verbose: bool = True) -> Tuple[Dict[str, pd.DataFrame], Optional[pd.Series]]:
    """
    Subset every block (and labels) to the samples present in all of them.

    Order follows the first block, so an already aligned input is returned
    unchanged.

    Returns
    -------
    blocks : dict
        Aligned blocks
    labels : pd.Series or None
        Aligned labels
    """
    if len(blocks) == 0:
        raise DataAlignmentError("No blocks supplied")

    sample_sets = [set(df.index) for df in blocks.values()]
    if labels is not None:
        sample_sets.append(set(labels.index))
    common = set.intersection(*sample_sets)

    first = next(iter(blocks.values()))
    common_samples = [sid for sid in first.index if sid in common]

    if len(common_samples) == 0:
        raise DataAlignmentError("No samples are shared by all blocks")

    if verbose:
        print(f"Found {len(common_samples)} common samples across {len(blocks)} blocks")
        for name, df in blocks.items():
            n_unique = len(set(df.index) - common)
            if n_unique > 0:
                print(f"  - {name}: {n_unique} unique samples will be excluded")

    aligned = {name: df.loc[common_samples] for name, df in blocks.items()}
    aligned_labels = labels.loc[common_samples] if labels is not None else None

    validate_alignment(aligned, aligned_labels)
    return aligned, aligned_labels


@dataclass(frozen=True, eq=False)
class MultiBlockData:
    """
    Container for multi-block omics data.

    Maintains separate blocks while ensuring sample alignment. Used for
    methods like DIABLO and MOFA that need block structure preserved.
    """

    blocks: Dict[str, pd.DataFrame]
    labels: Optional[pd.Series] = None
    name: str = 'cohort'
    _sample_ids: pd.Index = field(init=False, repr=False)

    def __post_init__(self):
        blocks = {str(k): v for k, v in self.blocks.items()}
        labels = self.labels
        if labels is not None and not isinstance(labels, pd.Series):
            first = next(iter(blocks.values()))
            labels = np.asarray(labels)
            if len(labels) != len(first.index):
                raise DataAlignmentError(
                    f"Label vector has {len(labels)} entries, blocks have "
                    f"{len(first.index)} samples"
                )
            labels = pd.Series(labels, index=first.index, name='label')
        sample_ids = validate_alignment(blocks, labels)
        object.__setattr__(self, 'blocks', blocks)
        object.__setattr__(self, 'labels', labels)
        object.__setattr__(self, '_sample_ids', sample_ids)

    @property
    def block_names(self) -> List[str]:
        """Get names of all blocks."""
        return list(self.blocks.keys())

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def n_samples(self) -> int:
        return len(self._sample_ids)

    def get_block(self, name: str) -> pd.DataFrame:
        """Get feature table for a block."""
        if name not in self.blocks:
            raise KeyError(f"Block '{name}' not found. Available: {self.block_names}")
        return self.blocks[name]

    def feature_names(self, name: str) -> List[str]:
        return [str(c) for c in self.get_block(name).columns]

    def subset(self, block_names: List[str]) -> 'MultiBlockData':
        """Return a new container holding only ``block_names``."""
        return MultiBlockData(
            blocks={name: self.get_block(name) for name in block_names},
            labels=self.labels,
            name=self.name,
        )

    def transposed(self) -> Dict[str, pd.DataFrame]:
        """Blocks as features x samples tables."""
        return {name: df.T for name, df in self.blocks.items()}

    def get_summary(self) -> pd.DataFrame:
        """Get summary of all blocks."""
        summary_data = []

        for name, block in self.blocks.items():
            values = block.to_numpy(dtype=float)
            summary_data.append({
                'Block': name,
                'Samples': block.shape[0],
                'Features': block.shape[1],
                'Missing_Values': int(np.isnan(values).sum()),
                'Mean': np.nanmean(values),
                'Std': np.nanstd(values)
            })

        return pd.DataFrame(summary_data)
