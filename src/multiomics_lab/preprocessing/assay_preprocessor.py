"""
Assay table preprocessing.

Brings each block to the state both analysis methods expect: no missing
values, finite numbers, and (optionally) transformed and scaled features.
"""

from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from multiomics_lab.config import DEFAULT_PREPROCESSING_CONFIG, merge_config


class AssayPreprocessor:
    """
    Config-driven preprocessing of one samples x features assay table.

    Steps (each recorded in the preprocessing log):
    1. Drop features with too many missing values
    2. Impute remaining missing values
    3. Optionally drop zero-variance features
    4. Log transform
    5. Scale
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize preprocessor.

        Parameters
        ----------
        config : dict, optional
            Overrides for DEFAULT_PREPROCESSING_CONFIG
        """
        self.config = merge_config(DEFAULT_PREPROCESSING_CONFIG, config)
        self.scaler = None
        self.preprocessing_log = []

    def filter_low_quality_features(self, df: pd.DataFrame) -> pd.DataFrame:
        """Remove features whose missing share exceeds ``drop_threshold``."""
        threshold = self.config['drop_threshold']

        missing_prop = df.isna().mean()
        keep = missing_prop[missing_prop <= threshold].index

        n_dropped = df.shape[1] - len(keep)
        if n_dropped > 0:
            self._log(f"Dropped {n_dropped} features with >{threshold*100}% missing values")

        return df[keep]

    def handle_missing(self, df: pd.DataFrame) -> pd.DataFrame:
        """Impute missing values feature-wise."""
        strategy = self.config['impute']
        n_missing = int(df.isna().sum().sum())
        if n_missing == 0 or strategy is None:
            return df

        if strategy == 'median':
            df = df.fillna(df.median())
            # Columns that were entirely missing have no median
            df = df.fillna(0)
        elif strategy == 'zero':
            df = df.fillna(0)
        else:
            raise ValueError(f"Unknown imputation strategy: {strategy}")

        self._log(f"Imputed {n_missing} missing values ({strategy})")
        return df

    def apply_transformation(self, df: pd.DataFrame) -> pd.DataFrame:
        """Apply log or log2 transformation."""
        transform_type = self.config['transform']

        if transform_type in ('log', 'log2'):
            if (df.to_numpy() < 0).any():
                raise ValueError(f"Cannot {transform_type}-transform negative values")
            # Add small constant to avoid log(0)
            epsilon = 1e-10
            func = np.log if transform_type == 'log' else np.log2
            self._log(f"Applied {transform_type} transformation with epsilon={epsilon}")
            return func(df + epsilon)

        if transform_type is not None:
            raise ValueError(f"Unknown transformation: {transform_type}")

        return df

    def apply_scaling(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Scale features.

        Zero-variance features are centred but not divided, so they stay at 0
        instead of becoming NaN.
        """
        scaling_type = self.config['scaling']
        X = df.to_numpy(dtype=float)

        if scaling_type == 'standard':
            self.scaler = StandardScaler()
            X_scaled = self.scaler.fit_transform(X)
            self._log("Applied standard scaling (z-score)")

        elif scaling_type == 'pareto':
            # Pareto scaling: mean-centered, divided by sqrt(std)
            mean = np.nanmean(X, axis=0)
            std = np.nanstd(X, axis=0)
            std[std == 0] = 1.0
            X_scaled = (X - mean) / np.sqrt(std)
            self._log("Applied Pareto scaling")

        elif scaling_type == 'none':
            X_scaled = X
            self._log("No scaling applied")

        else:
            raise ValueError(f"Unknown scaling: {scaling_type}")

        return pd.DataFrame(X_scaled, index=df.index, columns=df.columns)

    def preprocess(self, df: pd.DataFrame, name: str = 'block') -> pd.DataFrame:
        """
        Complete preprocessing pipeline.

        Parameters
        ----------
        df : pd.DataFrame
            Samples x features table
        name : str
            Block name used in the log

        Returns
        -------
        pd.DataFrame
            Preprocessed table with the same sample index
        """
        self._log(f"Starting preprocessing for {name}")
        self._log(f"Initial shape: {df.shape}")

        df = df.apply(pd.to_numeric, errors='coerce')
        df = self.filter_low_quality_features(df)
        df = self.handle_missing(df)

        if self.config['remove_zero_variance']:
            df = self._remove_zero_variance_features(df)

        df = self.apply_transformation(df)
        df = self.apply_scaling(df)
        df = self._check_data_quality(df)

        self._log(f"Preprocessing complete. Final shape: {df.shape}")
        return df

    def preprocess_blocks(self, blocks: Dict[str, pd.DataFrame]) -> Dict[str, pd.DataFrame]:
        """Run :meth:`preprocess` on every block of a mapping."""
        return {name: self.preprocess(df, name=name) for name, df in blocks.items()}

    def _log(self, message: str):
        """Add message to preprocessing log."""
        self.preprocessing_log.append(message)

    def get_log(self) -> list:
        """Return preprocessing log."""
        return self.preprocessing_log

    def print_log(self):
        """Print preprocessing log."""
        print("\n".join(self.preprocessing_log))

    def _remove_zero_variance_features(self, df: pd.DataFrame) -> pd.DataFrame:
        variances = df.var(axis=0, ddof=0)
        keep = variances[variances > 0].index
        n_removed = df.shape[1] - len(keep)

        if n_removed > 0:
            self._log(f"Removed {n_removed} zero-variance features")
        else:
            self._log(f"All {df.shape[1]} features have variance > 0")
        return df[keep]

    def _check_data_quality(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Replace any NaN/Inf left after transformation.

        With ``impute=None`` missing values are kept, for methods that model
        them (factor analysis).
        """
        X = df.to_numpy(dtype=float)
        n_inf = int(np.isinf(X).sum())
        if self.config['impute'] is None:
            n_kept = int(np.isnan(X).sum())
            if n_kept > 0:
                self._log(f"Keeping {n_kept} missing values (no imputation)")
            n_nan = 0
        else:
            n_nan = int(np.isnan(X).sum())

        if n_nan > 0:
            self._log(f"Warning: Found {n_nan} NaN values after preprocessing, replacing with 0")
        if n_inf > 0:
            self._log(f"Warning: Found {n_inf} Inf values after preprocessing, replacing with max finite")
        if n_nan or n_inf:
            fill = np.nan if self.config['impute'] is None else 0.0
            X = np.nan_to_num(X, nan=fill)
            return pd.DataFrame(X, index=df.index, columns=df.columns)

        return df
