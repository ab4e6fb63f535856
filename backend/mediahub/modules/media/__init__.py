"""Media records, upload registration and read-time quality resolution."""
