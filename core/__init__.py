"""Ingestion pipeline: envelope resolution, field extraction, quality notes, series alignment."""
