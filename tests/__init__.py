"""fhirmodel test suite."""
