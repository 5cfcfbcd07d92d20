"""
Ingestion of threonine strain experiment groups: plate layouts, growth
assays and production spreadsheets reconciled into per-well results.
"""
