"""External services: storage backends and exchange rate sources."""
