"""
Performance reporting for clustering results.

This module provides summary tables and seaborn visualizations for DBSCAN
clustering results using a custom color scheme.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from typing import Dict, Any, Optional, Tuple
import logging
from pathlib import Path

from ..core.data_models import ClusteringResult, NOISE
from ..core.exceptions import ClusteringError, InsufficientDataError
from .cluster_membership import clusters_to_dataframe
from .observation_store import ObservationStore
from .parameter_tuner import k_distances


logger = logging.getLogger(__name__)

# Custom color scheme: Black, White, Dark Grey, Dark Green
CUSTOM_COLORS = {
    'black': '#000000',
    'white': '#FFFFFF',
    'dark_grey': '#404040',
    'dark_green': '#0d4f01'
}


class ClusteringPerformanceReporter:
    """
    Performance reporter for clustering results with seaborn visualizations.

    Reports combine the run summary, a per-cluster table and, when a save
    path is given, plots of cluster sizes, cluster quality and the
    k-distance curve that the eps heuristic reads from.
    """

    def __init__(self, dpi: int = 150):
        """
        Initialize the performance reporter.

        Args:
            dpi: Resolution of saved figures
        """
        self.dpi = dpi
        sns.set_style("whitegrid")
        plt.rcParams['figure.facecolor'] = CUSTOM_COLORS['white']
        plt.rcParams['axes.facecolor'] = CUSTOM_COLORS['white']

        logger.info("ClusteringPerformanceReporter initialized")

    def generate_clustering_report(self,
                                   clustering_result: ClusteringResult,
                                   data=None,
                                   save_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Generate clustering performance report.

        Args:
            clustering_result: Result of a DBSCAN run
            data: Observations the run was fitted on, needed for the k-distance plot
            save_path: Optional directory to save visualizations

        Returns:
            Dictionary containing report data and visualization paths
        """
        logger.info("Generating clustering performance report")

        try:
            report = {
                'metrics': clustering_result.metrics.copy(),
                'summary': self.generate_summary_stats(clustering_result),
                'cluster_table': self.build_cluster_table(clustering_result),
                'visualizations': {}
            }

            if save_path:
                save_dir = Path(save_path)
                save_dir.mkdir(parents=True, exist_ok=True)

                dist_path = self._create_cluster_distribution_plot(
                    clustering_result, save_dir / "cluster_distribution.png"
                )
                report['visualizations']['cluster_distribution'] = str(dist_path)

                if clustering_result.clusters:
                    quality_path = self._create_cluster_quality_plot(
                        report['cluster_table'], save_dir / "cluster_quality.png"
                    )
                    report['visualizations']['cluster_quality'] = str(quality_path)

                if data is not None:
                    k_path = self._create_k_distance_plot(
                        data, clustering_result, save_dir / "k_distance.png"
                    )
                    if k_path is not None:
                        report['visualizations']['k_distance'] = str(k_path)

            logger.info("Clustering performance report generated successfully")
            return report

        except Exception as e:
            raise ClusteringError(
                f"Failed to generate clustering report: {str(e)}",
                component="ClusteringReporter"
            ) from e

    def generate_summary_stats(self, clustering_result: ClusteringResult) -> Dict[str, Any]:
        """
        Generate summary statistics for a clustering result.

        Args:
            clustering_result: Clustering results

        Returns:
            Dictionary of summary statistics
        """
        labels = clustering_result.labels
        total = len(labels)
        n_noise = int(np.sum(labels == NOISE))

        summary = {
            'total_points': total,
            'n_clusters': clustering_result.n_clusters,
            'n_noise_points': n_noise,
            'noise_percentage': (n_noise / total) * 100 if total else 0.0,
            'eps': clustering_result.eps,
            'min_samples': clustering_result.min_samples,
            'metric': clustering_result.metric,
            'cluster_sizes': {}
        }

        for cluster_id in np.unique(labels[labels != NOISE]):
            summary['cluster_sizes'][f'cluster_{cluster_id}'] = int(np.sum(labels == cluster_id))

        if n_noise > 0:
            summary['cluster_sizes']['noise_points'] = n_noise

        return summary

    def build_cluster_table(self, clustering_result: ClusteringResult) -> pd.DataFrame:
        """One row per ranked cluster."""
        return clusters_to_dataframe(clustering_result.clusters)

    def _create_cluster_distribution_plot(self,
                                          clustering_result: ClusteringResult,
                                          save_path: Path) -> Path:
        """Observations per cluster, noise as its own bar, counts annotated."""
        unique_labels, counts = np.unique(clustering_result.labels, return_counts=True)
        df = pd.DataFrame({
            'Cluster': ['Noise' if label == NOISE else f'Cluster {label}' for label in unique_labels],
            'Count': counts
        })
        return self._save_bar_plot(df, 'Count', save_path,
                                   title='Cluster Distribution',
                                   ylabel='Number of Observations',
                                   color=CUSTOM_COLORS['dark_green'],
                                   annotate=True)

    def _create_cluster_quality_plot(self, cluster_table: pd.DataFrame, save_path: Path) -> Path:
        """Mean quality score per cluster, in ranking order."""
        df = cluster_table.assign(Cluster=[f'Cluster {cid}' for cid in cluster_table['cluster_id']])
        return self._save_bar_plot(df, 'quality_score', save_path,
                                   title='Cluster Quality',
                                   ylabel='Mean Quality Score',
                                   color=CUSTOM_COLORS['dark_grey'],
                                   xlabel='Cluster (ranked)',
                                   ylim=(0.0, 1.0))

    def _save_bar_plot(self, df: pd.DataFrame, value_column: str, save_path: Path,
                       title: str, ylabel: str, color: str,
                       xlabel: str = 'Cluster',
                       annotate: bool = False,
                       ylim: Optional[Tuple[float, float]] = None) -> Path:
        """
        Draw one bar per row of ``df`` (x from its 'Cluster' column) and save it.

        Args:
            df: Frame with a 'Cluster' column and ``value_column``
            value_column: Column plotted as bar height
            save_path: Path to save the plot
            title: Figure title
            ylabel: Y axis label
            color: Bar color
            xlabel: X axis label
            annotate: Write each bar's value above it
            ylim: Optional fixed y range

        Returns:
            Path where plot was saved
        """
        black = CUSTOM_COLORS['black']

        fig, ax = plt.subplots(figsize=(10, 6))
        sns.barplot(data=df, x='Cluster', y=value_column, color=color, ax=ax)

        ax.set_title(title, fontsize=16, fontweight='bold', color=black)
        ax.set_xlabel(xlabel, fontsize=12, color=black)
        ax.set_ylabel(ylabel, fontsize=12, color=black)
        if ylim is not None:
            ax.set_ylim(*ylim)

        values = df[value_column].tolist()
        if annotate and values:
            offset = max(values) * 0.01
            for position, value in enumerate(values):
                ax.text(position, value + offset, str(value),
                        ha='center', va='bottom', fontweight='bold', color=black)

        ax.tick_params(axis='x', labelrotation=45, colors=black)
        fig.tight_layout()
        fig.savefig(save_path, dpi=self.dpi, bbox_inches='tight',
                    facecolor=CUSTOM_COLORS['white'])
        plt.close(fig)

        logger.info("%s plot saved to %s", title, save_path)
        return save_path

    def _create_k_distance_plot(self, data, clustering_result: ClusteringResult,
                                save_path: Path) -> Optional[Path]:
        """
        Create sorted k-distance curve with the run's eps marked.

        Args:
            data: Observations the run was fitted on
            clustering_result: Clustering results
            save_path: Path to save the plot

        Returns:
            Path where plot was saved, or None if the batch is too small
        """
        store = ObservationStore.from_rows(data)
        try:
            distances = np.sort(k_distances(store, clustering_result.metric,
                                            clustering_result.min_samples))
        except InsufficientDataError:
            logger.warning("Too few observations for a k-distance plot")
            return None

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.plot(np.arange(len(distances)), distances, color=CUSTOM_COLORS['dark_green'], linewidth=2)
        ax.axhline(y=clustering_result.eps, color=CUSTOM_COLORS['dark_grey'],
                   linestyle='--', linewidth=2,
                   label=f'eps: {clustering_result.eps:.4f}')

        ax.set_xlabel('Observations (sorted)', color=CUSTOM_COLORS['black'])
        ax.set_ylabel(f'{clustering_result.min_samples}-distance ({clustering_result.metric})',
                      color=CUSTOM_COLORS['black'])
        ax.set_title('k-Distance Graph', fontsize=16, fontweight='bold',
                     color=CUSTOM_COLORS['black'])
        ax.legend()

        plt.tight_layout()
        plt.savefig(save_path, dpi=self.dpi, bbox_inches='tight',
                    facecolor=CUSTOM_COLORS['white'])
        plt.close()

        logger.info("k-distance plot saved to %s", save_path)
        return save_path
