"""Domain models, ports and the ingestion pipeline."""
