"""Wire format codecs."""
