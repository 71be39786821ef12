"""Architecture extraction: static signals, inference decoding, merge."""
