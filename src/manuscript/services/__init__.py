"""Services built on top of deployed jobs."""
