"""Result persistence helpers."""

from .results_writer import ResultsWriter, analysis_to_dict

__all__ = ["ResultsWriter", "analysis_to_dict"]
