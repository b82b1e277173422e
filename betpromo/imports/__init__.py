"""CSV import: parsing, staging pipeline and import bookkeeping."""
