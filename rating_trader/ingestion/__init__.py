"""
Ingestion layer — external rating feed client and price-field parsing.

Submodules:
  feed_client   — cursor-paginated HTTP client for the analyst-rating feed
  price_parser  — textual target-price → float conversion

Credential placement (.env, gitignored):
  RATING_TRADER_FEED_TOKEN   — bearer token for the rating feed
  FEED_API_TOKEN             — accepted as a fallback name
"""
