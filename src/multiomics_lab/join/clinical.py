"""
Joining analysis outputs with clinical metadata.

The join is left-safe: every sample of the analysis result ends up in
exactly one output row, either matched to one clinical record or flagged
as unmatched. Ambiguous clinical keys are flagged rather than duplicated.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import pandas as pd

from multiomics_lab.data.sample_ids import normalize_sample_ids
from multiomics_lab.exceptions import DataAlignmentError
from multiomics_lab.io.persistence import write_clinical_table


@dataclass(frozen=True, eq=False)
class JoinReport:
    """
    Outcome of a clinical join.

    Attributes
    ----------
    table : pd.DataFrame
        One row per analysed sample: the analysis columns, the clinical
        columns, plus boolean 'matched' and 'ambiguous' columns
    unmatched : list
        Samples with no clinical record
    duplicated_keys : list
        Normalised clinical keys of analysed samples that occur more than
        once in the clinical table
    """

    table: pd.DataFrame
    unmatched: List[str] = field(default_factory=list)
    duplicated_keys: List[str] = field(default_factory=list)

    @property
    def all_matched(self) -> bool:
        return len(self.unmatched) == 0

    @property
    def keys_unique(self) -> bool:
        return len(self.duplicated_keys) == 0

    @property
    def n_matched(self) -> int:
        return int(self.table['matched'].sum())

    def require_complete(self) -> 'JoinReport':
        """Raise DataAlignmentError unless every sample matched one unique record."""
        problems = []
        if not self.all_matched:
            problems.append(f"{len(self.unmatched)} samples without clinical data: "
                            f"{self.unmatched[:10]}")
        if not self.keys_unique:
            problems.append(f"duplicated clinical keys: {self.duplicated_keys[:10]}")
        if problems:
            raise DataAlignmentError("Clinical join incomplete; " + "; ".join(problems))
        return self

    def summary(self) -> str:
        n = len(self.table)
        return (f"{self.n_matched}/{n} samples matched, "
                f"{len(self.unmatched)} unmatched, "
                f"{len(self.duplicated_keys)} duplicated clinical keys")


def clean_clinical(clinical: pd.DataFrame,
                   id_column: Optional[str] = None,
                   pattern: Optional[str] = None,
                   columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Index a clinical table by normalised sample id.

    Parameters
    ----------
    clinical : pd.DataFrame
        Raw clinical table
    id_column : str, optional
        Column with sample identifiers (default: the index)
    pattern : str, optional
        Sample id pattern name or regex; None keeps identifiers as they are
    columns : sequence, optional
        Clinical columns to keep (default: all)

    Returns
    -------
    pd.DataFrame
        Clinical subset indexed by normalised id; duplicated ids are kept
        so the caller can detect them
    """
    df = clinical.copy()
    if id_column is not None:
        if id_column not in df.columns:
            raise KeyError(f"Clinical id column '{id_column}' not found: {list(df.columns)}")
        ids = df.pop(id_column)
    else:
        ids = df.index.to_series()

    ids = ids.astype(str)
    if pattern is not None:
        df.index = normalize_sample_ids(ids, pattern)
    else:
        df.index = pd.Index(ids.to_numpy(), dtype=object)
    df.index.name = 'sample'

    if columns is not None:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise KeyError(f"Clinical columns not found: {missing}")
        df = df[list(columns)]

    return df


def join_clinical(scores: Union[pd.DataFrame, pd.Series],
                  clinical: pd.DataFrame,
                  id_column: Optional[str] = None,
                  pattern: Optional[str] = None,
                  normalize_scores: bool = False,
                  columns: Optional[Sequence[str]] = None) -> JoinReport:
    """
    Left-join per-sample analysis output with clinical metadata.

    Parameters
    ----------
    scores : pd.DataFrame or pd.Series
        Per-sample output (factor scores, labels) indexed by sample id
    clinical : pd.DataFrame
        Clinical table
    id_column : str, optional
        Clinical id column (default: the clinical index)
    pattern : str, optional
        Pattern used to normalise clinical ids (and score ids when
        ``normalize_scores`` is True)
    normalize_scores : bool
        Also normalise the score index with ``pattern``
    columns : sequence, optional
        Clinical columns to carry over

    Returns
    -------
    JoinReport
        Joined table plus unmatched samples and duplicated keys
    """
    if isinstance(scores, pd.Series):
        scores = scores.to_frame(name=scores.name or 'value')

    scores = scores.copy()
    if normalize_scores and pattern is not None:
        scores.index = normalize_sample_ids(scores.index, pattern)
    else:
        scores.index = pd.Index(scores.index.astype(str), dtype=object)
    scores.index.name = 'sample'
    if scores.index.has_duplicates:
        raise DataAlignmentError(
            f"Analysis output has duplicated sample ids: "
            f"{scores.index[scores.index.duplicated()].unique().tolist()[:10]}"
        )

    cleaned = clean_clinical(clinical, id_column=id_column, pattern=pattern, columns=columns)

    overlap = sorted(set(cleaned.columns) & set(scores.columns))
    if overlap:
        cleaned = cleaned.rename(columns={c: f'{c}_clinical' for c in overlap})

    duplicated = cleaned.index[cleaned.index.duplicated()].unique().tolist()
    unique_clinical = cleaned[~cleaned.index.duplicated(keep='first')]

    table = scores.join(unique_clinical, how='left')
    table['matched'] = table.index.isin(unique_clinical.index)
    table['ambiguous'] = table.index.isin(duplicated)

    unmatched = table.index[~table['matched']].tolist()

    sample_set = set(scores.index)
    return JoinReport(
        table=table,
        unmatched=unmatched,
        duplicated_keys=[k for k in duplicated if k in sample_set],
    )


def export_clinical_subset(clinical: pd.DataFrame,
                           path,
                           id_column: Optional[str] = None,
                           pattern: Optional[str] = None,
                           columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Clean a clinical table, keep the first record per normalised id and
    write it as CSV for downstream tools.

    Returns
    -------
    pd.DataFrame
        The table written
    """
    cleaned = clean_clinical(clinical, id_column=id_column, pattern=pattern, columns=columns)
    n_dup = int(cleaned.index.duplicated().sum())
    if n_dup:
        print(f"  Dropping {n_dup} duplicated clinical records (first kept)")
    cleaned = cleaned[~cleaned.index.duplicated(keep='first')]
    write_clinical_table(cleaned, path)
    return cleaned
