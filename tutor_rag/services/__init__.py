"""Services: ingestion, retrieval and conversation memory."""
