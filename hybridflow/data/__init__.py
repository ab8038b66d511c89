"""
Datasets: the tabular values passed along the edges of a workflow,
built-in sample datasets and CSV ingestion.
"""
