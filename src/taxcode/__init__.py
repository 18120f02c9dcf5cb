"""Legal-code section search: extraction, sectioning and keyword search."""
