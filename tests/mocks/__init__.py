"""In-memory fakes for the content service and the setlist position store."""
