"""Upload ingestion: storage, text extraction, and workflow notification."""
