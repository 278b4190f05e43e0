"""AI status classification, rule-based extraction and the scan pipeline."""
