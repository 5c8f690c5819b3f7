"""Tool-call protocol infrastructure."""
