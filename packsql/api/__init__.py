"""HTTP API for slicing, validation and question answering."""
